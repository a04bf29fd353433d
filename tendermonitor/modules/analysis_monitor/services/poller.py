"""
Polls the section-status report of a tender at a fixed cadence until the
pipeline settles.

Each tender gets an explicit ``PollHandle`` owned by whoever opened the tender
view; ``stop()`` on teardown cancels the timer and turns any fetch still in
flight into a no-op for that handle. At most one fetch is outstanding per
tender: a tick that fires while a fetch is unresolved is skipped, which also
keeps snapshots applied in the order they were received, and a handle started
for a tender whose previous handle still has a request running joins that
request instead of issuing another one.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from tendermonitor.config import settings
from ..models.pydantic_models import Snapshot
from .section_state import is_settled

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]
FetchFn = Callable[[str], Awaitable[Snapshot]]


class PollHandle:
    def __init__(
        self,
        tender_id: str,
        fetch: FetchFn,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        interval: Optional[float] = None,
    ):
        self.tender_id = tender_id
        self.fetch = fetch
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS

        self.latest: Optional[Snapshot] = None
        self.ticks = 0
        self.skipped_ticks = 0
        self.fetches = 0
        self.failures = 0
        self.last_error: Optional[Exception] = None

        self._stopped = False
        self._settled = False
        self._refresh_pending = False
        self._ticker: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._request: Optional[asyncio.Future] = None

    # ==================== Lifecycle ====================

    def _begin(self, outstanding: Optional[asyncio.Future] = None):
        logger.info(f"Polling tender {self.tender_id} every {self.interval:g}s")
        self._launch_fetch(outstanding)
        self._ensure_ticker()

    def stop(self):
        """Cancels polling. Safe to call any number of times."""
        if self._stopped:
            return
        self._stopped = True
        self._refresh_pending = False
        self._stop_ticker()
        logger.info(
            f"Stopped polling tender {self.tender_id} "
            f"(ticks={self.ticks}, skipped={self.skipped_ticks}, failures={self.failures})"
        )

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def is_running(self) -> bool:
        """True while the cadence timer is active."""
        return not self._stopped and self._ticker is not None and not self._ticker.done()

    @property
    def fetch_in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def outstanding_request(self) -> Optional[asyncio.Future]:
        """The service request this handle started or joined, while it is still running."""
        if self._request is not None and not self._request.done():
            return self._request
        return None

    def refresh(self) -> bool:
        """
        Requests an out-of-band fetch. If one is already outstanding, a single
        follow-up fetch runs right after it instead. Returns False once stopped.
        """
        if self._stopped:
            return False
        if self.fetch_in_flight:
            self._refresh_pending = True
            return True
        self._launch_fetch()
        return True

    async def wait_idle(self):
        """Waits until no fetch is outstanding or queued as a follow-up."""
        while self._in_flight is not None and not self._in_flight.done():
            await asyncio.shield(self._in_flight)

    # ==================== Timer ====================

    def _ensure_ticker(self):
        if self._stopped or self.is_running:
            return
        self._ticker = asyncio.get_running_loop().create_task(self._tick_loop())

    def _stop_ticker(self):
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._ticker = None

    async def _tick_loop(self):
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                return
            self.ticks += 1
            if self.fetch_in_flight:
                self.skipped_ticks += 1
                logger.debug(f"Tick {self.ticks} for tender {self.tender_id} skipped: fetch still outstanding")
                continue
            self._launch_fetch()

    # ==================== Fetch ====================

    def _launch_fetch(self, outstanding: Optional[asyncio.Future] = None):
        if outstanding is None:
            self.fetches += 1
            outstanding = asyncio.ensure_future(self.fetch(self.tender_id))
        else:
            logger.debug(f"Tender {self.tender_id}: joining the snapshot request already running")
        self._request = outstanding
        self._in_flight = asyncio.get_running_loop().create_task(self._run_fetch(outstanding))

    async def _run_fetch(self, request: asyncio.Future):
        try:
            snapshot = await request
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._stopped:
                logger.debug(f"Discarding late fetch failure for tender {self.tender_id}: {e}")
                return
            self._record_failure(e)
        else:
            if self._stopped:
                logger.debug(f"Discarding late snapshot for tender {self.tender_id}")
                return
            self._apply(snapshot)
        finally:
            if self._in_flight is asyncio.current_task():
                self._in_flight = None
            if self._refresh_pending and not self._stopped:
                self._refresh_pending = False
                self._launch_fetch()

    def _record_failure(self, error: Exception):
        self.failures += 1
        self.last_error = error
        logger.warning(f"Snapshot fetch for tender {self.tender_id} failed: {error}")
        # State is unknown until a fetch succeeds, so keep the cadence going
        self._ensure_ticker()
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception:
                logger.exception(f"Error callback for tender {self.tender_id} raised")

    def _apply(self, snapshot: Snapshot):
        self.latest = snapshot
        self.last_error = None
        self._settled = is_settled(snapshot)
        try:
            self.on_snapshot(snapshot)
        except Exception:
            logger.exception(f"Snapshot callback for tender {self.tender_id} raised")

        if self._stopped:
            # The callback tore the view down
            return
        if self._settled:
            if self.is_running:
                logger.info(f"Tender {self.tender_id} settled; polling paused")
            self._stop_ticker()
        else:
            self._ensure_ticker()


class SnapshotPoller:
    """Starts one PollHandle per tender view."""

    def __init__(self, fetch: FetchFn, interval: Optional[float] = None):
        self.fetch = fetch
        self.interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS
        self._handles: Dict[str, PollHandle] = {}

    def start(
        self,
        tender_id: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> PollHandle:
        """
        Fetches immediately, then on every interval while unsettled. Must be
        called from within the running event loop.
        """
        previous = self._handles.get(tender_id)
        outstanding = None
        if previous is not None:
            if not previous.stopped:
                # A tender is polled by one handle only
                logger.info(f"Replacing active poller for tender {tender_id}")
                previous.stop()
            outstanding = previous.outstanding_request

        handle = PollHandle(tender_id, self.fetch, on_snapshot, on_error, interval=self.interval)
        self._handles[tender_id] = handle
        handle._begin(outstanding)
        return handle

    def stop(self, tender_id: str):
        handle = self._handles.get(tender_id)
        if handle is None:
            return
        handle.stop()
        # Kept while its request runs so a restart can join it
        if handle.outstanding_request is None:
            self._handles.pop(tender_id, None)

    def stop_all(self):
        for tender_id in list(self._handles):
            self.stop(tender_id)
