"""
Maps a section's status to whether its tab may be entered and how it is badged.
"""
import logging
from typing import List

from ..models.pydantic_models import SectionAccess
from ..models.sections import DEFAULT_TAB, SectionId, known_sections
from ..models.status import AnalysisStatus, Badge
from .section_state import SectionStateMachine

logger = logging.getLogger(__name__)

_BADGES = {
    AnalysisStatus.unstarted: Badge.locked,
    AnalysisStatus.analyzing: Badge.spinner,
    AnalysisStatus.failed: Badge.warning,
    AnalysisStatus.succeeded: Badge.checkmark,
}


def can_enter(section_id: SectionId, state: SectionStateMachine) -> SectionAccess:
    status = state.status(section_id)
    return SectionAccess(
        section_id=section_id,
        status=status,
        enterable=status is AnalysisStatus.succeeded,
        badge=_BADGES[status],
        retry=status is AnalysisStatus.failed and section_id.reanalysable,
    )


def access_table(state: SectionStateMachine) -> List[SectionAccess]:
    """Access decision for every modelled section, in tab order."""
    return [can_enter(section_id, state) for section_id in known_sections()]


class TabSelection:
    """The active tab of a tender view. Only enterable tabs can become active."""

    def __init__(self, initial: SectionId = DEFAULT_TAB):
        self.active = initial

    def select(self, section_id: SectionId, state: SectionStateMachine) -> bool:
        """
        Switches to the requested tab if it can be entered. Otherwise nothing
        changes and False is returned.
        """
        access = can_enter(section_id, state)
        if not access.enterable:
            logger.debug(f"Ignoring selection of {section_id.value}: {access.status.value}")
            return False
        self.active = section_id
        return True
