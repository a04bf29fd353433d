"""
Unit tests for the per-section state machine and the settled check.
"""

import pytest

from tendermonitor.modules.analysis_monitor.models.sections import SectionId, known_sections
from tendermonitor.modules.analysis_monitor.models.status import AnalysisStatus
from tendermonitor.modules.analysis_monitor.services.section_state import (
    SectionStateMachine,
    is_settled,
    reported_status,
)

S = AnalysisStatus


def all_sections(status):
    return {s.value: status for s in known_sections()}


@pytest.fixture
def state():
    return SectionStateMachine("T1")


class TestApply:
    """Snapshots replace state wholesale and report transitions"""

    def test_no_data_before_first_snapshot(self, state):
        assert not state.has_data
        assert state.aggregate() is None
        assert state.status(SectionId.scope) is S.unstarted
        assert not state.is_settled()

    def test_first_snapshot_reports_transitions_from_unstarted(self, state, snapshot_of):
        transitions = state.apply(snapshot_of(sections={"scope": "success", "boq": None}))
        assert [(t.section_id, t.previous, t.current) for t in transitions] == [
            (SectionId.scope, S.unstarted, S.succeeded)
        ]

    def test_transition_between_snapshots(self, state, snapshot_of):
        state.apply(snapshot_of(sections={"scope": "analyzing", "boq": "analyzing"}))
        transitions = state.apply(snapshot_of(sections={"scope": "success", "boq": "analyzing"}))
        assert len(transitions) == 1
        assert transitions[0].section_id is SectionId.scope
        assert transitions[0].current is S.succeeded

    def test_wholesale_replacement_drops_missing_sections(self, state, snapshot_of):
        state.apply(snapshot_of(sections={"scope": "success", "boq": "success"}))
        state.apply(snapshot_of(sections={"scope": "success"}))
        assert state.status(SectionId.boq) is S.unstarted

    def test_snapshot_for_other_tender_is_refused(self, state, snapshot_of):
        with pytest.raises(ValueError):
            state.apply(snapshot_of(tender_id="T2"))

    def test_aggregate_is_taken_verbatim(self, state, snapshot_of):
        snapshot = snapshot_of(sections={"scope": "success"}, extra_remote={"risk": "success", "x": None})
        state.apply(snapshot)
        assert state.aggregate() == snapshot.progress
        assert state.aggregate().total == 3
        assert state.aggregate().completion_percent == snapshot.progress.completion_percent

    def test_reset_discards_snapshot(self, state, snapshot_of):
        state.apply(snapshot_of())
        state.mark_analyzing(SectionId.scope)
        state.reset()
        assert not state.has_data
        assert state.overlay == {}


class TestStageGateApplied:
    """Stray section data is ignored while the stage gate is closed"""

    @pytest.mark.parametrize("segmentation, categorization", [
        ("analyzing", "success"),
        (None, "success"),
        ("success", "analyzing"),
        ("failed", "success"),
    ])
    def test_sections_read_unstarted(self, state, snapshot_of, segmentation, categorization):
        state.apply(snapshot_of(segmentation=segmentation, categorization=categorization,
                                sections=all_sections("success")))
        assert not state.section_work_visible
        for section_id in known_sections():
            assert state.status(section_id) is S.unstarted
            assert not state.accessible(section_id)

    def test_unknown_section_is_unstarted(self, snapshot_of):
        assert reported_status(snapshot_of(), SectionId.UNKNOWN) is S.unstarted


class TestOverlay:
    """Optimistic analyzing overlay lives until the next snapshot"""

    def test_overlay_overrides_reported_status(self, state, snapshot_of):
        state.apply(snapshot_of(sections={"scope": "failed"}))
        state.mark_analyzing(SectionId.scope)
        assert state.status(SectionId.scope) is S.analyzing
        assert not state.accessible(SectionId.scope)

    def test_next_snapshot_discards_overlay(self, state, snapshot_of):
        state.apply(snapshot_of(sections={"scope": "failed"}))
        state.mark_analyzing(SectionId.scope)
        state.apply(snapshot_of(sections={"scope": "failed"}))
        assert state.overlay == {}
        assert state.status(SectionId.scope) is S.failed

    def test_overlay_is_not_reported_as_transition(self, state, snapshot_of):
        state.apply(snapshot_of(sections={"scope": "failed"}))
        state.mark_analyzing(SectionId.scope)
        assert state.apply(snapshot_of(sections={"scope": "failed"})) == []

    def test_clear_overlay(self, state, snapshot_of):
        state.apply(snapshot_of(sections={"scope": "success"}))
        state.mark_analyzing(SectionId.scope)
        state.clear_overlay(SectionId.scope)
        assert state.status(SectionId.scope) is S.succeeded


class TestSettled:
    def test_none_is_not_settled(self):
        assert not is_settled(None)

    def test_all_terminal_is_settled(self, snapshot_of):
        sections = all_sections("success")
        sections["boq"] = "failed"
        assert is_settled(snapshot_of(sections=sections))

    def test_one_running_section_is_not_settled(self, snapshot_of):
        sections = all_sections("success")
        sections["dates"] = "analyzing"
        assert not is_settled(snapshot_of(sections=sections))

    def test_missing_known_section_is_not_settled(self, snapshot_of):
        sections = all_sections("success")
        del sections["dates"]
        assert not is_settled(snapshot_of(sections=sections))

    def test_running_stage_is_not_settled(self, snapshot_of):
        assert not is_settled(snapshot_of(categorization="analyzing", sections=all_sections("success")))

    def test_failed_stage_settles(self, snapshot_of):
        assert is_settled(snapshot_of(segmentation="failed", categorization=None, sections={}))
        assert is_settled(snapshot_of(categorization="failed", sections={}))

    def test_terminal_uses_overlay(self, state, snapshot_of):
        state.apply(snapshot_of(sections=all_sections("success")))
        assert state.is_terminal()
        state.mark_analyzing(SectionId.scope)
        assert not state.is_terminal()
