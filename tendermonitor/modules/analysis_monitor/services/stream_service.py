"""
Service to stream snapshot changes of a tender to the dashboard over SSE.
"""
import asyncio
import json
from typing import List

from fastapi import Request
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from ..models.pydantic_models import SectionTransition, Snapshot
from ..monitor import TenderAnalysisMonitor
from .access_gate import access_table


class SnapshotStreamService:
    """Relays one monitor's snapshots to an SSE connection until settled or disconnected."""

    def __init__(self, monitor: TenderAnalysisMonitor):
        self.monitor = monitor

    def stream(self, request: Request) -> EventSourceResponse:
        return EventSourceResponse(self._stream_generator(request))

    async def _stream_generator(self, request: Request):
        queue: asyncio.Queue = asyncio.Queue()

        def on_change(snapshot: Snapshot, transitions: List[SectionTransition]):
            queue.put_nowait((snapshot, transitions))

        unsubscribe = self.monitor.subscribe(on_change)
        try:
            # 1. Immediately send the current state if there is one
            if self.monitor.state.snapshot is not None:
                yield self._snapshot_event("initial_state", self.monitor.state.snapshot, [])
                if self.monitor.state.is_settled():
                    yield self._format_sse_event("control", "close", "Analysis already settled.")
                    return

            # 2. Relay every snapshot until the pipeline settles
            while True:
                if await request.is_disconnected():
                    break
                try:
                    snapshot, transitions = await asyncio.wait_for(queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                yield self._snapshot_event("snapshot", snapshot, transitions)
                if self.monitor.state.is_settled():
                    yield self._format_sse_event("control", "close", "Analysis settled.")
                    break
        finally:
            unsubscribe()

    def _snapshot_event(self, event_name: str, snapshot: Snapshot, transitions: List[SectionTransition]) -> ServerSentEvent:
        data = {
            "snapshot": snapshot.model_dump(mode="json"),
            "transitions": [t.model_dump(mode="json") for t in transitions],
            "sections": [a.model_dump(mode="json") for a in access_table(self.monitor.state)],
            "section_work_visible": self.monitor.state.section_work_visible,
        }
        return self._format_sse_event(event_name, "full", data)

    def _format_sse_event(self, event_name: str, field_name: str, data) -> ServerSentEvent:
        """Helper to format data into an SSE-compatible event."""
        return ServerSentEvent(data=json.dumps({"event": event_name, "field": field_name, "data": data}), event=event_name)
