"""
The fixed set of analysis sections shown as tabs, and the single lookup table
between tab ids and the category names used by the analysis service.
"""
import enum
from dataclasses import dataclass
from typing import Dict, List, Optional


class SectionId(str, enum.Enum):
    tender_summary = "tender_summary"
    scope = "scope"
    evaluation = "evaluation"
    eligibility = "eligibility"
    technical = "technical"
    financial = "financial"
    boq = "boq"
    conditions = "conditions"
    dates = "dates"
    submission = "submission"
    # Anything the dashboard does not model yet
    UNKNOWN = "unknown"

    @classmethod
    def from_tab(cls, tab_id: Optional[str]) -> "SectionId":
        """Resolves a tab id; unmapped ids become UNKNOWN."""
        if isinstance(tab_id, SectionId):
            return tab_id
        try:
            section_id = cls(tab_id)
        except ValueError:
            return cls.UNKNOWN
        return section_id

    @classmethod
    def from_remote(cls, remote_name: Optional[str]) -> "SectionId":
        """Resolves an analysis-service category name; unmapped names become UNKNOWN."""
        return _BY_REMOTE_NAME.get(remote_name, cls.UNKNOWN)

    @property
    def remote_name(self) -> Optional[str]:
        definition = SECTION_TABLE.get(self)
        return definition.remote_name if definition else None

    @property
    def display_name(self) -> str:
        definition = SECTION_TABLE.get(self)
        return definition.display_name if definition else "Unknown section"

    @property
    def reanalysable(self) -> bool:
        definition = SECTION_TABLE.get(self)
        return definition.reanalysable if definition else False


@dataclass(frozen=True)
class SectionDefinition:
    section_id: SectionId
    remote_name: str
    display_name: str
    reanalysable: bool = True


_DEFINITIONS = [
    SectionDefinition(SectionId.tender_summary, "tender_summary", "Tender Summary", reanalysable=False),
    SectionDefinition(SectionId.scope, "scope_of_work", "Scope of Work"),
    SectionDefinition(SectionId.evaluation, "evaluation_criteria", "Evaluation Criteria"),
    SectionDefinition(SectionId.eligibility, "eligibility_conditions", "Eligibility"),
    SectionDefinition(SectionId.technical, "technical_requirements", "Technical Evaluation"),
    SectionDefinition(SectionId.financial, "financial_requirements", "Financial Evaluation"),
    SectionDefinition(SectionId.boq, "bill_of_quantities", "Bill of Quantities"),
    SectionDefinition(SectionId.conditions, "conditions_of_contract", "Contract Conditions"),
    SectionDefinition(SectionId.dates, "important_dates", "Key Dates"),
    # The final document list is produced by the tail of the pipeline and cannot be re-run alone
    SectionDefinition(SectionId.submission, "annexures_attachments", "Submission", reanalysable=False),
]

SECTION_TABLE: Dict[SectionId, SectionDefinition] = {d.section_id: d for d in _DEFINITIONS}
_BY_REMOTE_NAME: Dict[str, SectionId] = {d.remote_name: d.section_id for d in _DEFINITIONS}

DEFAULT_TAB = SectionId.scope


def known_sections() -> List[SectionId]:
    """All modelled sections in tab order."""
    return [d.section_id for d in _DEFINITIONS]
