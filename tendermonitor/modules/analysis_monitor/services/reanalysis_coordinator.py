"""
Coordinates user-triggered re-runs of a single analysis section.

A re-run happens in two phases. Submitting it is handled here and yields a
result or an error. Its completion is only ever observed by the poller through
a later snapshot; no terminal status is synthesised locally.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from tendermonitor.config import settings
from ..client.analysis_client import TenderAnalysisClient
from ..exceptions import NetworkError, ReanalysisConflictError
from ..models.pydantic_models import ReanalysisResult
from ..models.sections import SectionId
from .section_cache import SectionCache
from .section_state import SectionStateMachine

logger = logging.getLogger(__name__)


@dataclass
class ReanalysisTarget:
    """What a successful re-run of one tender touches locally."""
    state: SectionStateMachine
    cache: SectionCache
    refresh: Callable[[], object]


class ReanalysisCoordinator:
    """Single-flights re-runs per tender, across all of its sections."""

    def __init__(self, client: TenderAnalysisClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout or settings.FETCH_TIMEOUT_SECONDS
        self._outstanding: Dict[str, SectionId] = {}
        self._targets: Dict[str, ReanalysisTarget] = {}

    def register(self, tender_id: str, state: SectionStateMachine, cache: SectionCache, refresh: Callable[[], object]):
        self._targets[tender_id] = ReanalysisTarget(state=state, cache=cache, refresh=refresh)

    def unregister(self, tender_id: str):
        self._targets.pop(tender_id, None)

    def outstanding(self, tender_id: str) -> Optional[SectionId]:
        """The section being re-run for a tender, if any."""
        return self._outstanding.get(tender_id)

    def check(self, tender_id: str, section_id: SectionId):
        """Raises ReanalysisConflictError if the request must be refused."""
        if not section_id.reanalysable:
            raise ReanalysisConflictError(
                section_id,
                ReanalysisConflictError.EXCLUDED,
                f"{section_id.display_name} cannot be reanalysed on its own",
            )
        running = self._outstanding.get(tender_id)
        if running is not None:
            raise ReanalysisConflictError(
                section_id,
                ReanalysisConflictError.IN_FLIGHT,
                f"Reanalysis of {running.display_name} is still being submitted for this tender",
            )

    async def reanalyze(self, tender_id: str, section_id: SectionId) -> ReanalysisResult:
        # No await before the outstanding mark, so concurrent callers see it
        self.check(tender_id, section_id)
        self._outstanding[tender_id] = section_id
        target = self._targets.get(tender_id)
        if target is not None:
            target.state.mark_analyzing(section_id)

        logger.info(f"Submitting reanalysis of {section_id.value} for tender {tender_id}")
        submitted = False
        try:
            acknowledgement = await asyncio.wait_for(
                self.client.reanalyze_section(tender_id, section_id.remote_name),
                timeout=self.timeout,
            )
            submitted = True
        except asyncio.TimeoutError as e:
            raise NetworkError("reanalyze_section", f"no response within {self.timeout:g}s") from e
        except Exception as e:
            logger.warning(f"Reanalysis of {section_id.value} for tender {tender_id} failed: {e}")
            raise
        finally:
            self._outstanding.pop(tender_id, None)
            if not submitted and target is not None:
                # Cancelled or failed: back to the last reported status until the next snapshot
                target.state.clear_overlay(section_id)

        if target is not None:
            target.cache.invalidate(section_id)
            target.refresh()

        return ReanalysisResult(
            tender_id=tender_id,
            section_id=section_id,
            submitted=True,
            message=str(acknowledgement["message"]) if acknowledgement.get("message") else None,
            acknowledgement=acknowledgement,
        )
