"""
Unit tests for the SSE relay of snapshot changes.
"""

import asyncio
import json

import pytest
from unittest.mock import AsyncMock, Mock

from tendermonitor.modules.analysis_monitor.models.sections import known_sections
from tendermonitor.modules.analysis_monitor.monitor import TenderAnalysisMonitor
from tendermonitor.modules.analysis_monitor.services.section_cache import MemoryCacheStore
from tendermonitor.modules.analysis_monitor.services.stream_service import SnapshotStreamService


def make_monitor(bodies):
    client = Mock()
    client.snapshot = AsyncMock(side_effect=list(bodies))
    return TenderAnalysisMonitor("T1", client=client, cache_store=MemoryCacheStore(), poll_interval=0.01)


def all_sections(**overrides):
    sections = {s.value: "success" for s in known_sections()}
    sections.update(overrides)
    return sections


def connected_request():
    request = Mock()
    request.is_disconnected = AsyncMock(return_value=False)
    return request


async def collect(generator, limit=10):
    events = []
    async for event in generator:
        events.append(event)
        if len(events) >= limit:
            break
    return events


class TestSnapshotStream:
    @pytest.mark.asyncio
    async def test_relays_until_settled(self, report):
        monitor = make_monitor([
            report(sections=all_sections(scope="analyzing")),
            report(sections=all_sections()),
        ])
        service = SnapshotStreamService(monitor)
        try:
            events = await asyncio.wait_for(collect(service._stream_generator(connected_request())), timeout=5)
        finally:
            monitor.close()

        assert [e.event for e in events] == ["snapshot", "snapshot", "control"]
        last = json.loads(events[1].data)["data"]
        assert last["section_work_visible"] is True
        assert last["transitions"] == [{"section_id": "scope", "previous": "analyzing", "current": "succeeded"}]

    @pytest.mark.asyncio
    async def test_settled_tender_sends_initial_state_and_closes(self, report):
        monitor = make_monitor([report()])
        monitor.subscribe(lambda snapshot, transitions: None)
        await monitor.handle.wait_idle()
        service = SnapshotStreamService(monitor)
        try:
            events = await collect(service._stream_generator(connected_request()))
        finally:
            monitor.close()

        assert [e.event for e in events] == ["initial_state", "control"]

    @pytest.mark.asyncio
    async def test_disconnect_ends_stream_and_unsubscribes(self, report):
        monitor = make_monitor([report(sections={"scope": "analyzing"})] * 50)
        request = Mock()
        request.is_disconnected = AsyncMock(return_value=True)
        service = SnapshotStreamService(monitor)
        try:
            events = await collect(service._stream_generator(request))
            assert events == []
            assert monitor.handle is None
        finally:
            monitor.close()
