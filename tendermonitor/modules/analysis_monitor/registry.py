"""
Keeps one monitor per tender for the HTTP surface.

All monitors share one analysis-service client, one poller and one reanalysis
coordinator, so single-flight holds per tender across every open view and
across a tender being released and opened again. Monitors that have settled
and have no stream listeners are released after ``MONITOR_IDLE_SECONDS``
without use.
"""
import logging
import time
from typing import Callable, Dict, Optional

from tendermonitor.config import settings
from .client.analysis_client import TenderAnalysisClient
from .monitor import TenderAnalysisMonitor
from .services.poller import SnapshotPoller
from .services.reanalysis_coordinator import ReanalysisCoordinator
from .services.snapshot_fetcher import SnapshotFetcher

logger = logging.getLogger(__name__)


class MonitorRegistry:
    def __init__(
        self,
        client: Optional[TenderAnalysisClient] = None,
        cache_store=None,
        poll_interval: Optional[float] = None,
        idle_after: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client or TenderAnalysisClient()
        self.coordinator = ReanalysisCoordinator(self.client)
        self.poller = SnapshotPoller(SnapshotFetcher(self.client).fetch, interval=poll_interval)
        self.cache_store = cache_store
        self.idle_after = idle_after if idle_after is not None else settings.MONITOR_IDLE_SECONDS
        self.clock = clock
        self._monitors: Dict[str, TenderAnalysisMonitor] = {}
        self._keepalive: Dict[str, Callable[[], None]] = {}
        self._last_used: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._monitors)

    def get(self, tender_id: str) -> Optional[TenderAnalysisMonitor]:
        return self._monitors.get(str(tender_id))

    def open(self, tender_id: str) -> TenderAnalysisMonitor:
        """Returns the tender's monitor, creating it and starting its polling if needed."""
        tender_id = str(tender_id)
        self.release_idle()
        self._last_used[tender_id] = self.clock()
        monitor = self._monitors.get(tender_id)
        if monitor is None:
            monitor = TenderAnalysisMonitor(
                tender_id,
                client=self.client,
                coordinator=self.coordinator,
                cache_store=self.cache_store,
                poller=self.poller,
            )
            self._monitors[tender_id] = monitor
            self._keepalive[tender_id] = monitor.subscribe(lambda snapshot, transitions: None)
            logger.info(f"Opened monitor for tender {tender_id}")
        return monitor

    def release(self, tender_id: str):
        tender_id = str(tender_id)
        self._keepalive.pop(tender_id, None)
        self._last_used.pop(tender_id, None)
        monitor = self._monitors.pop(tender_id, None)
        if monitor is not None:
            monitor.close()
            logger.info(f"Released monitor for tender {tender_id}")

    def release_idle(self) -> int:
        """Releases settled monitors without stream listeners that have gone unused. Returns the count."""
        now = self.clock()
        idle = [
            tender_id
            for tender_id, monitor in self._monitors.items()
            if monitor.listener_count <= 1
            and monitor.state.is_settled()
            and now - self._last_used.get(tender_id, now) >= self.idle_after
        ]
        for tender_id in idle:
            logger.debug(f"Tender {tender_id} idle for {self.idle_after:g}s")
            self.release(tender_id)
        return len(idle)

    async def shutdown(self):
        for tender_id in list(self._monitors):
            self.release(tender_id)
        self.poller.stop_all()
        await self.client.aclose()


_registry: Optional[MonitorRegistry] = None


def get_monitor_registry() -> MonitorRegistry:
    """FastAPI dependency returning the process-wide registry."""
    global _registry
    if _registry is None:
        _registry = MonitorRegistry()
    return _registry
