"""
Pydantic schemas for pipeline snapshots and the values handed to the dashboard.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .sections import SectionId
from .status import AnalysisStatus, Badge, ProgressPhase

logger = logging.getLogger(__name__)

# Backend rounds the percentage it reports
PERCENT_TOLERANCE = 0.05


class SectionReport(BaseModel):
    """One section entry of the section-status report."""
    model_config = ConfigDict(frozen=True)

    section_id: SectionId
    name: str
    status: AnalysisStatus = AnalysisStatus.unstarted
    order: int = 0


class ProgressReport(BaseModel):
    """
    Aggregate counters exactly as reported by the analysis service.
    The backend may count sections the dashboard does not model, so these are
    never recomputed from the section map.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total: int = Field(ge=0)
    succeeded: int = Field(alias="completed", ge=0)
    failed: int = Field(ge=0)
    analyzing: int = Field(ge=0)
    not_started: int = Field(ge=0)
    completion_percent: float = Field(alias="completion_percentage", ge=0, le=100)

    @model_validator(mode="after")
    def check_accounting(self) -> "ProgressReport":
        counted = self.succeeded + self.failed + self.analyzing + self.not_started
        if counted != self.total:
            raise ValueError(f"progress counters sum to {counted}, total is {self.total}")
        expected = 100.0 * self.succeeded / self.total if self.total else 0.0
        if abs(expected - self.completion_percent) > PERCENT_TOLERANCE:
            # Reported verbatim; only the counters are authoritative
            logger.warning(
                f"completion_percentage {self.completion_percent} does not match {self.succeeded}/{self.total}"
            )
        return self


class Snapshot(BaseModel):
    """Complete, authoritative state of one tender's pipeline at a point in time."""
    model_config = ConfigDict(frozen=True)

    tender_id: str
    tender_name: Optional[str] = None
    segmentation: AnalysisStatus
    categorization: AnalysisStatus
    sections: Dict[SectionId, SectionReport] = {}
    progress: ProgressReport
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SectionTransition(BaseModel):
    """A section status change observed between two consecutive snapshots."""
    section_id: SectionId
    previous: AnalysisStatus
    current: AnalysisStatus


class SectionAccess(BaseModel):
    """Whether a section tab may be entered, and how its tab is decorated."""
    model_config = ConfigDict(frozen=True)

    section_id: SectionId
    status: AnalysisStatus
    enterable: bool
    badge: Badge
    retry: bool = False


class PhaseStep(BaseModel):
    """One row of the three-phase progress view."""
    phase: ProgressPhase
    label: str
    status: AnalysisStatus
    current: bool = False


class ProgressView(BaseModel):
    """What the dashboard renders instead of tabs while the pipeline is running."""
    phase: ProgressPhase
    steps: List[PhaseStep]
    sections: List[SectionAccess] = []
    progress: Optional[ProgressReport] = None


class ReanalysisResult(BaseModel):
    """Outcome of submitting a single-section re-run (completion is observed by polling)."""
    tender_id: str
    section_id: SectionId
    submitted: bool
    message: Optional[str] = None
    acknowledgement: Dict[str, Any] = {}


class CacheEntry(BaseModel):
    """A cached section detail payload."""
    section_id: SectionId
    payload: Dict[str, Any]
    fetched_at: float = Field(description="Clock reading when the payload was fetched")
