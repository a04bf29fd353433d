"""
Monitor of one tender's analysis pipeline, as used by a tender view.

Wires the poller, the section state machine, the access gate, the section
cache and the reanalysis coordinator together and exposes the operations the
dashboard calls.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from tendermonitor.config import settings
from .client.analysis_client import TenderAnalysisClient
from .exceptions import MonitorError, NetworkError, error_payload
from .models.pydantic_models import (
    ProgressView,
    ReanalysisResult,
    SectionAccess,
    SectionTransition,
    Snapshot,
)
from .models.sections import SectionId
from .models.status import AnalysisStatus
from .services.access_gate import TabSelection, access_table, can_enter
from .services.poller import PollHandle, SnapshotPoller
from .services.reanalysis_coordinator import ReanalysisCoordinator
from .services.section_cache import SectionCache, build_cache_store
from .services.section_state import SectionStateMachine
from .services.snapshot_fetcher import SnapshotFetcher
from .services.stage_gate import phase_steps, progress_phase

logger = logging.getLogger(__name__)

SnapshotChangeCallback = Callable[[Snapshot, List[SectionTransition]], None]
SectionRef = Union[SectionId, str]


class TenderAnalysisMonitor:
    def __init__(
        self,
        tender_id: str,
        client: Optional[TenderAnalysisClient] = None,
        coordinator: Optional[ReanalysisCoordinator] = None,
        cache_store=None,
        poll_interval: Optional[float] = None,
        poller: Optional[SnapshotPoller] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.tender_id = str(tender_id)
        self._owns_client = client is None
        self.client = client or TenderAnalysisClient()
        self.fetcher = SnapshotFetcher(self.client)
        self.state = SectionStateMachine(self.tender_id)
        self.cache = SectionCache(
            self.tender_id,
            self._load_detail,
            store=cache_store if cache_store is not None else build_cache_store(),
            clock=clock,
        )
        self.tabs = TabSelection()
        self.coordinator = coordinator or ReanalysisCoordinator(self.client)
        self.coordinator.register(self.tender_id, self.state, self.cache, self.refresh)
        self.poller = poller or SnapshotPoller(self.fetcher.fetch, interval=poll_interval)

        self.banner: Optional[Dict[str, Any]] = None
        self._handle: Optional[PollHandle] = None
        self._subscribers: List[SnapshotChangeCallback] = []
        self._closed = False

    # ==================== Polling ====================

    def subscribe(self, on_snapshot_change: SnapshotChangeCallback) -> Callable[[], None]:
        """
        Registers a listener for snapshot changes and starts polling if this is
        the first one. Returns a function that removes the listener; polling
        stops when the last listener is gone.
        """
        if self._closed:
            raise MonitorError(f"Monitor for tender {self.tender_id} is closed")
        self._subscribers.append(on_snapshot_change)
        if self._handle is None or self._handle.stopped:
            self._handle = self.poller.start(self.tender_id, self._on_snapshot, self._on_poll_error)

        def unsubscribe():
            if on_snapshot_change in self._subscribers:
                self._subscribers.remove(on_snapshot_change)
            if not self._subscribers and self._handle is not None:
                self._handle.stop()
                self._handle = None

        return unsubscribe

    @property
    def handle(self) -> Optional[PollHandle]:
        return self._handle

    @property
    def listener_count(self) -> int:
        return len(self._subscribers)

    def refresh(self) -> bool:
        """Out-of-band snapshot fetch; resumes the cadence if the result is unsettled."""
        if self._handle is None:
            return False
        return self._handle.refresh()

    def _on_snapshot(self, snapshot: Snapshot):
        transitions = self.state.apply(snapshot)
        for callback in list(self._subscribers):
            try:
                callback(snapshot, transitions)
            except Exception:
                logger.exception(f"Snapshot listener for tender {self.tender_id} raised")

    def _on_poll_error(self, error: Exception):
        # Recovered by the next tick; only logged
        if not self.state.has_data:
            logger.info(f"No usable report for tender {self.tender_id} yet: {error}")

    # ==================== Sections ====================

    def section_access(self, section_id: SectionRef) -> SectionAccess:
        return can_enter(SectionId.from_tab(section_id), self.state)

    def sections(self) -> List[SectionAccess]:
        return access_table(self.state)

    def select_tab(self, section_id: SectionRef) -> bool:
        """Moves to a tab if it can be entered; otherwise the current tab stays."""
        return self.tabs.select(SectionId.from_tab(section_id), self.state)

    @property
    def active_tab(self) -> SectionId:
        return self.tabs.active

    async def fetch_section_detail(self, section_id: SectionRef) -> Optional[Dict[str, Any]]:
        """
        Detail payload of an enterable section, served from the cache while it
        is fresh. Returns None for sections that cannot be entered.
        """
        section = SectionId.from_tab(section_id)
        if not self.section_access(section).enterable:
            logger.debug(f"Not fetching {section.value} for tender {self.tender_id}: not enterable")
            return None
        try:
            return await self.cache.get(section)
        except NetworkError as e:
            self.banner = error_payload("section_detail", e, {"section": section.value})
            raise

    async def _load_detail(self, section_id: SectionId) -> Dict[str, Any]:
        try:
            return await asyncio.wait_for(
                self.client.section_detail(self.tender_id, section_id.remote_name),
                timeout=settings.FETCH_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError("section_detail", f"no response within {settings.FETCH_TIMEOUT_SECONDS:g}s") from e

    # ==================== Actions ====================

    async def request_reanalysis(self, section_id: SectionRef) -> ReanalysisResult:
        """
        Submits a re-run of one section. Conflicts raise ReanalysisConflictError
        before any request is made; network failures are surfaced as a banner.
        """
        section = SectionId.from_tab(section_id)
        try:
            return await self.coordinator.reanalyze(self.tender_id, section)
        except NetworkError as e:
            self.banner = error_payload("reanalyze_section", e, {"section": section.value})
            raise

    async def trigger_full_analysis(self) -> Dict[str, Any]:
        """Starts the whole pipeline; every cached section becomes stale."""
        try:
            acknowledgement = await self.client.trigger_full_analysis(self.tender_id)
        except NetworkError as e:
            self.banner = error_payload("trigger_full_analysis", e)
            raise
        self.cache.clear()
        self.refresh()
        return acknowledgement

    def dismiss_banner(self):
        self.banner = None

    # ==================== Views ====================

    def progress_view(self) -> Optional[ProgressView]:
        """Three-phase progress view, or None before the first report arrives."""
        snapshot = self.state.snapshot
        if snapshot is None:
            return None
        phase = progress_phase(snapshot.segmentation, snapshot.categorization)
        sections = access_table(self.state)
        if self.state.is_terminal():
            failed = any(s.status is AnalysisStatus.failed for s in sections)
            sections_status = AnalysisStatus.failed if failed else AnalysisStatus.succeeded
        elif any(s.status is not AnalysisStatus.unstarted for s in sections):
            sections_status = AnalysisStatus.analyzing
        else:
            sections_status = AnalysisStatus.unstarted
        return ProgressView(
            phase=phase,
            steps=phase_steps(snapshot.segmentation, snapshot.categorization, sections_status),
            sections=sections if self.state.section_work_visible else [],
            progress=snapshot.progress,
        )

    # ==================== Teardown ====================

    def close(self):
        """Ends the monitoring session: polling stops and late results are ignored."""
        if self._closed:
            return
        self._closed = True
        if self._handle is not None:
            self._handle.stop()
            self._handle = None
        self.poller.stop(self.tender_id)
        self._subscribers.clear()
        self.coordinator.unregister(self.tender_id)
        self.state.reset()

    async def aclose(self):
        self.close()
        if self._owns_client:
            await self.client.aclose()
