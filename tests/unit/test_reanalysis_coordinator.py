"""
Unit tests for the reanalysis coordinator.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from tendermonitor.modules.analysis_monitor.exceptions import NetworkError, ReanalysisConflictError
from tendermonitor.modules.analysis_monitor.models.sections import SectionId
from tendermonitor.modules.analysis_monitor.models.status import AnalysisStatus
from tendermonitor.modules.analysis_monitor.services.reanalysis_coordinator import ReanalysisCoordinator
from tendermonitor.modules.analysis_monitor.services.section_cache import MemoryCacheStore, SectionCache
from tendermonitor.modules.analysis_monitor.services.section_state import SectionStateMachine


# ==================== Fixtures ====================


@pytest.fixture
def client():
    client = Mock()
    client.reanalyze_section = AsyncMock(return_value={"status": "success", "message": "queued"})
    return client


@pytest.fixture
def state(snapshot_of):
    state = SectionStateMachine("T1")
    state.apply(snapshot_of(sections={"scope": "success", "boq": "failed", "dates": "success"}))
    return state


@pytest.fixture
def cache():
    async def load(section_id):
        return {"section": section_id.value}

    return SectionCache("T1", load, store=MemoryCacheStore())


@pytest.fixture
def refresh():
    return Mock(return_value=True)


@pytest.fixture
def coordinator(client, state, cache, refresh):
    coordinator = ReanalysisCoordinator(client, timeout=1)
    coordinator.register("T1", state, cache, refresh)
    return coordinator


# ==================== Rejections ====================


class TestRejections:
    """Conflicts are rejected before any request is made"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("section_id", [SectionId.tender_summary, SectionId.submission, SectionId.UNKNOWN])
    async def test_excluded_sections(self, coordinator, client, state, section_id):
        with pytest.raises(ReanalysisConflictError) as exc_info:
            await coordinator.reanalyze("T1", section_id)

        assert exc_info.value.reason == ReanalysisConflictError.EXCLUDED
        client.reanalyze_section.assert_not_called()
        assert state.overlay == {}

    @pytest.mark.asyncio
    async def test_second_request_for_same_tender_is_rejected(self, coordinator, client):
        release = asyncio.Event()

        async def slow(tender_id, remote_name):
            await release.wait()
            return {"status": "success"}

        client.reanalyze_section = AsyncMock(side_effect=slow)
        first = asyncio.ensure_future(coordinator.reanalyze("T1", SectionId.scope))
        await asyncio.sleep(0)

        with pytest.raises(ReanalysisConflictError) as exc_info:
            await coordinator.reanalyze("T1", SectionId.boq)

        assert exc_info.value.reason == ReanalysisConflictError.IN_FLIGHT
        assert client.reanalyze_section.await_count == 1
        release.set()
        await first

    @pytest.mark.asyncio
    async def test_other_tenders_are_independent(self, coordinator, client):
        release = asyncio.Event()

        async def slow(tender_id, remote_name):
            await release.wait()
            return {"status": "success"}

        client.reanalyze_section = AsyncMock(side_effect=slow)
        first = asyncio.ensure_future(coordinator.reanalyze("T1", SectionId.scope))
        second = asyncio.ensure_future(coordinator.reanalyze("T2", SectionId.scope))
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(first, second)
        assert all(r.submitted for r in results)
        assert client.reanalyze_section.await_count == 2

    @pytest.mark.asyncio
    async def test_new_request_allowed_after_completion(self, coordinator, client):
        await coordinator.reanalyze("T1", SectionId.scope)
        await coordinator.reanalyze("T1", SectionId.boq)
        assert client.reanalyze_section.await_count == 2
        assert coordinator.outstanding("T1") is None


# ==================== Accepted requests ====================


class TestAccepted:
    @pytest.mark.asyncio
    async def test_calls_service_with_remote_name(self, coordinator, client):
        result = await coordinator.reanalyze("T1", SectionId.boq)

        client.reanalyze_section.assert_awaited_once_with("T1", "bill_of_quantities")
        assert result.submitted
        assert result.section_id is SectionId.boq
        assert result.message == "queued"

    @pytest.mark.asyncio
    async def test_marks_section_analyzing_while_submitting(self, coordinator, client, state):
        seen = {}

        async def capture(tender_id, remote_name):
            seen["status"] = state.status(SectionId.boq)
            seen["outstanding"] = coordinator.outstanding("T1")
            return {"status": "success"}

        client.reanalyze_section = AsyncMock(side_effect=capture)
        await coordinator.reanalyze("T1", SectionId.boq)

        assert seen == {"status": AnalysisStatus.analyzing, "outstanding": SectionId.boq}

    @pytest.mark.asyncio
    async def test_overlay_kept_until_next_snapshot(self, coordinator, state):
        await coordinator.reanalyze("T1", SectionId.boq)
        assert state.status(SectionId.boq) is AnalysisStatus.analyzing

    @pytest.mark.asyncio
    async def test_invalidates_only_target_section(self, coordinator, cache):
        for section_id in (SectionId.scope, SectionId.boq, SectionId.dates):
            await cache.get(section_id)
        untouched = {s: cache.peek(s) for s in (SectionId.scope, SectionId.dates)}

        await coordinator.reanalyze("T1", SectionId.boq)

        assert cache.peek(SectionId.boq) is None
        for section_id, entry in untouched.items():
            assert cache.peek(section_id) == entry

    @pytest.mark.asyncio
    async def test_requests_out_of_band_refresh(self, coordinator, refresh):
        await coordinator.reanalyze("T1", SectionId.scope)
        refresh.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_unregistered_tender_still_submits(self, client):
        coordinator = ReanalysisCoordinator(client, timeout=1)
        result = await coordinator.reanalyze("T9", SectionId.dates)
        assert result.submitted


# ==================== Failures ====================


class TestFailures:
    @pytest.mark.asyncio
    async def test_network_error_surfaces_without_guessing_status(self, coordinator, client, state, cache, refresh):
        await cache.get(SectionId.boq)
        client.reanalyze_section = AsyncMock(side_effect=NetworkError("reanalyze_section", "HTTP 500", 500))

        with pytest.raises(NetworkError):
            await coordinator.reanalyze("T1", SectionId.boq)

        # Back to the last reported status, cache and polling untouched
        assert state.status(SectionId.boq) is AnalysisStatus.failed
        assert cache.peek(SectionId.boq) is not None
        refresh.assert_not_called()
        assert coordinator.outstanding("T1") is None

    @pytest.mark.asyncio
    async def test_hung_submit_times_out(self, client, state, cache, refresh):
        async def hang(tender_id, remote_name):
            await asyncio.sleep(10)

        client.reanalyze_section = AsyncMock(side_effect=hang)
        coordinator = ReanalysisCoordinator(client, timeout=0.01)
        coordinator.register("T1", state, cache, refresh)

        with pytest.raises(NetworkError):
            await coordinator.reanalyze("T1", SectionId.scope)
        assert coordinator.outstanding("T1") is None
        assert state.overlay == {}

    @pytest.mark.asyncio
    async def test_cancelled_submit_clears_overlay(self, coordinator, client, state, cache, refresh):
        started = asyncio.Event()

        async def hang(tender_id, remote_name):
            started.set()
            await asyncio.sleep(10)

        client.reanalyze_section = AsyncMock(side_effect=hang)
        task = asyncio.ensure_future(coordinator.reanalyze("T1", SectionId.boq))
        await started.wait()
        assert state.status(SectionId.boq) is AnalysisStatus.analyzing

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert state.overlay == {}
        assert state.status(SectionId.boq) is AnalysisStatus.failed
        assert coordinator.outstanding("T1") is None
        refresh.assert_not_called()
