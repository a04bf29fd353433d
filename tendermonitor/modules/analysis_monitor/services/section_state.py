"""
Per-section state of one tender's analysis, rebuilt from every snapshot.

The snapshot is authoritative and replaced wholesale. The only local state is a
transient "analyzing" overlay written when a reanalysis is submitted; it is
dropped as soon as the next snapshot arrives.
"""
import logging
from typing import Dict, List, Optional

from ..models.pydantic_models import ProgressReport, SectionTransition, Snapshot
from ..models.sections import SectionId, known_sections
from ..models.status import AnalysisStatus
from .stage_gate import section_work_visible, stages_settled

logger = logging.getLogger(__name__)


def reported_status(snapshot: Optional[Snapshot], section_id: SectionId) -> AnalysisStatus:
    """Section status as reported, ignoring stray section data while the stage gate is closed."""
    if snapshot is None or section_id is SectionId.UNKNOWN:
        return AnalysisStatus.unstarted
    if not section_work_visible(snapshot.segmentation, snapshot.categorization):
        return AnalysisStatus.unstarted
    report = snapshot.sections.get(section_id)
    return report.status if report else AnalysisStatus.unstarted


def is_settled(snapshot: Optional[Snapshot]) -> bool:
    """Every stage and every known section has reached a terminal status."""
    if snapshot is None:
        return False
    if not stages_settled(snapshot.segmentation, snapshot.categorization):
        return False
    if not section_work_visible(snapshot.segmentation, snapshot.categorization):
        # A failed stage: no section work will start without a new trigger
        return True
    return all(reported_status(snapshot, s).is_terminal for s in known_sections())


class SectionStateMachine:
    def __init__(self, tender_id: str):
        self.tender_id = tender_id
        self._snapshot: Optional[Snapshot] = None
        self._overlay: Dict[SectionId, AnalysisStatus] = {}

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    @property
    def has_data(self) -> bool:
        return self._snapshot is not None

    @property
    def section_work_visible(self) -> bool:
        if self._snapshot is None:
            return False
        return section_work_visible(self._snapshot.segmentation, self._snapshot.categorization)

    def apply(self, snapshot: Snapshot) -> List[SectionTransition]:
        """Replaces the current snapshot and returns the section transitions it caused."""
        if snapshot.tender_id != self.tender_id:
            raise ValueError(f"Snapshot for tender {snapshot.tender_id} applied to monitor of {self.tender_id}")

        previous = self._snapshot
        self._snapshot = snapshot
        if self._overlay:
            logger.debug(f"Tender {self.tender_id}: snapshot supersedes overlay for {sorted(s.value for s in self._overlay)}")
        self._overlay = {}

        transitions = []
        for section_id in known_sections():
            before = reported_status(previous, section_id)
            after = reported_status(snapshot, section_id)
            if before is not after:
                transitions.append(SectionTransition(section_id=section_id, previous=before, current=after))
                logger.info(f"Tender {self.tender_id}: {section_id.value} {before.value} -> {after.value}")
        return transitions

    def status(self, section_id: SectionId) -> AnalysisStatus:
        if section_id in self._overlay:
            return self._overlay[section_id]
        return reported_status(self._snapshot, section_id)

    def accessible(self, section_id: SectionId) -> bool:
        return self.status(section_id) is AnalysisStatus.succeeded

    def aggregate(self) -> Optional[ProgressReport]:
        """Backend-reported progress, verbatim."""
        return self._snapshot.progress if self._snapshot else None

    def is_terminal(self) -> bool:
        return all(self.status(s).is_terminal for s in known_sections())

    def is_settled(self) -> bool:
        return is_settled(self._snapshot)

    def mark_analyzing(self, section_id: SectionId):
        self._overlay[section_id] = AnalysisStatus.analyzing

    def clear_overlay(self, section_id: SectionId):
        self._overlay.pop(section_id, None)

    @property
    def overlay(self) -> Dict[SectionId, AnalysisStatus]:
        return dict(self._overlay)

    def reset(self):
        """Discards all state when the monitoring session ends."""
        self._snapshot = None
        self._overlay = {}
