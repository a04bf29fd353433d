"""
Retrieves and validates the section-status report of one tender.

A report is either accepted whole or rejected whole: anything missing or
ill-shaped raises MalformedSnapshotError so callers fall back to "no data yet".
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from tendermonitor.config import settings
from ..client.analysis_client import TenderAnalysisClient
from ..exceptions import MalformedSnapshotError, NetworkError
from ..models.pydantic_models import ProgressReport, SectionReport, Snapshot
from ..models.sections import SectionId
from ..models.status import AnalysisStatus

logger = logging.getLogger(__name__)


def parse_snapshot(raw: Any, tender_id: str) -> Snapshot:
    """Builds a Snapshot from the JSON body of the section-status endpoint."""
    if not isinstance(raw, dict):
        raise MalformedSnapshotError(f"Report for tender {tender_id} is not an object")

    reported_id = raw.get("tender_id", tender_id)
    if str(reported_id) != str(tender_id):
        raise MalformedSnapshotError(f"Report is for tender {reported_id}, expected {tender_id}")

    stages = raw.get("stages")
    sections = raw.get("sections")
    progress = raw.get("progress")
    if not isinstance(stages, dict) or not isinstance(sections, dict) or not isinstance(progress, dict):
        raise MalformedSnapshotError(f"Report for tender {tender_id} is missing stages, sections or progress")
    if "segmentation" not in stages or "categorization" not in stages:
        raise MalformedSnapshotError(f"Report for tender {tender_id} is missing a stage status")

    try:
        return Snapshot(
            tender_id=str(tender_id),
            tender_name=raw.get("tender_name"),
            segmentation=AnalysisStatus.from_wire(stages["segmentation"]),
            categorization=AnalysisStatus.from_wire(stages["categorization"]),
            sections=_parse_sections(sections),
            progress=ProgressReport.model_validate(progress),
        )
    except (ValidationError, ValueError, TypeError) as e:
        raise MalformedSnapshotError(f"Report for tender {tender_id} is ill-shaped: {e}") from e


def _parse_sections(sections: Dict[str, Any]) -> Dict[SectionId, SectionReport]:
    parsed: Dict[SectionId, SectionReport] = {}
    for remote_name, entry in sections.items():
        section_id = SectionId.from_remote(remote_name)
        if section_id is SectionId.UNKNOWN:
            # Still counted by the backend's progress block
            logger.debug(f"Ignoring section not modelled by the dashboard: {remote_name}")
            continue
        if not isinstance(entry, dict) or "status" not in entry:
            raise ValueError(f"section {remote_name} has no status")
        parsed[section_id] = SectionReport(
            section_id=section_id,
            name=entry.get("name") or section_id.display_name,
            status=AnalysisStatus.from_wire(entry["status"]),
            order=int(entry.get("order") or 0),
        )
    return parsed


class SnapshotFetcher:
    """One request/response call for the current pipeline state of a tender."""

    def __init__(self, client: TenderAnalysisClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout or settings.FETCH_TIMEOUT_SECONDS

    async def fetch(self, tender_id: str) -> Snapshot:
        try:
            raw = await asyncio.wait_for(self.client.snapshot(tender_id), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError("snapshot", f"no response within {self.timeout:g}s") from e
        return parse_snapshot(raw, tender_id)
