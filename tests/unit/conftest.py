"""
Shared builders for section-status reports as the analysis service sends them.
"""
from typing import Dict, Optional

import pytest

from tendermonitor.modules.analysis_monitor.models.sections import SectionId, known_sections
from tendermonitor.modules.analysis_monitor.services.snapshot_fetcher import parse_snapshot

_COUNTERS = {
    "success": "completed",
    "failed": "failed",
    "analyzing": "analyzing",
    None: "not_started",
}


def build_report(
    tender_id: str = "T1",
    segmentation: Optional[str] = "success",
    categorization: Optional[str] = "success",
    sections: Optional[Dict[str, Optional[str]]] = None,
    extra_remote: Optional[Dict[str, Optional[str]]] = None,
) -> dict:
    """
    Section-status body with a consistent progress block. ``sections`` is keyed
    by tab id; ``extra_remote`` adds sections the dashboard does not model.
    """
    if sections is None:
        sections = {s.value: "success" for s in known_sections()}
    remote = {}
    for order, (tab_id, status) in enumerate(sections.items(), start=1):
        section_id = SectionId(tab_id)
        remote[section_id.remote_name] = {"name": section_id.display_name, "status": status, "order": order}
    for name, status in (extra_remote or {}).items():
        remote[name] = {"name": name, "status": status, "order": 99}

    progress = {"total": len(remote), "completed": 0, "failed": 0, "analyzing": 0, "not_started": 0}
    for entry in remote.values():
        progress[_COUNTERS[entry["status"]]] += 1
    progress["completion_percentage"] = (
        round(100.0 * progress["completed"] / progress["total"], 2) if progress["total"] else 0.0
    )

    return {
        "status": "success",
        "tender_id": tender_id,
        "tender_name": f"Tender {tender_id}",
        "stages": {"segmentation": segmentation, "categorization": categorization},
        "sections": remote,
        "progress": progress,
    }


def build_snapshot(**kwargs):
    tender_id = kwargs.get("tender_id", "T1")
    return parse_snapshot(build_report(**kwargs), tender_id)


@pytest.fixture
def report():
    return build_report


@pytest.fixture
def snapshot_of():
    return build_snapshot

