"""
API endpoints for the tender analysis monitor.
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..exceptions import NetworkError, ReanalysisConflictError, error_payload
from ..models.pydantic_models import ProgressView, ReanalysisResult, SectionAccess
from ..models.sections import SectionId
from ..registry import MonitorRegistry, get_monitor_registry
from ..services.stream_service import SnapshotStreamService

logger = logging.getLogger(__name__)

router = APIRouter()


def _section_or_404(section_id: str) -> SectionId:
    section = SectionId.from_tab(section_id)
    if section is SectionId.UNKNOWN:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown section: {section_id}")
    return section


@router.get("/{tender_id}/stream")
async def stream_snapshots(
    tender_id: str,
    request: Request,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    """
    Server-sent events with every snapshot change of the tender's analysis.
    Closes once every stage and section has settled.
    """
    monitor = registry.open(tender_id)
    return SnapshotStreamService(monitor).stream(request)


@router.get("/{tender_id}/sections", response_model=List[SectionAccess])
async def list_section_access(
    tender_id: str,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    """Access decision and badge for every section tab."""
    return registry.open(tender_id).sections()


@router.get("/{tender_id}/progress", response_model=ProgressView)
async def get_progress_view(
    tender_id: str,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    """Three-phase progress view; 404 until the first report has arrived."""
    view = registry.open(tender_id).progress_view()
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No analysis report received yet.")
    return view


@router.get("/{tender_id}/sections/{section_id}")
async def get_section_detail(
    tender_id: str,
    section_id: str,
    registry: MonitorRegistry = Depends(get_monitor_registry),
) -> Dict[str, Any]:
    """Detail payload of an analysed section, served from the section cache."""
    section = _section_or_404(section_id)
    monitor = registry.open(tender_id)
    try:
        detail = await monitor.fetch_section_detail(section)
    except NetworkError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error_payload("section_detail", e))
    if detail is None:
        access = monitor.section_access(section)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Section {section.value} is {access.status.value} and cannot be opened yet.",
        )
    return detail


@router.post(
    "/{tender_id}/sections/{section_id}/reanalyze",
    response_model=ReanalysisResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def reanalyze_section(
    tender_id: str,
    section_id: str,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    """
    Submits a re-run of one section. Completion shows up in later snapshots.

    **Status Codes:**
    - `202 Accepted` - Re-run submitted
    - `404 Not Found` - Unknown section
    - `409 Conflict` - Another re-run is outstanding, or the section cannot be re-run alone
    - `502 Bad Gateway` - Analysis service unavailable
    """
    section = _section_or_404(section_id)
    monitor = registry.open(tender_id)
    try:
        return await monitor.request_reanalysis(section)
    except ReanalysisConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"reason": e.reason, "message": str(e)},
        )
    except NetworkError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error_payload("reanalyze_section", e))


@router.post("/{tender_id}/analyze", status_code=status.HTTP_202_ACCEPTED)
async def trigger_full_analysis(
    tender_id: str,
    registry: MonitorRegistry = Depends(get_monitor_registry),
) -> Dict[str, Any]:
    """Starts the whole analysis pipeline for the tender."""
    monitor = registry.open(tender_id)
    try:
        return await monitor.trigger_full_analysis()
    except NetworkError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error_payload("trigger_full_analysis", e))


@router.delete("/{tender_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_monitor(
    tender_id: str,
    registry: MonitorRegistry = Depends(get_monitor_registry),
):
    """Ends monitoring of a tender when its view is closed."""
    registry.release(tender_id)
