"""
Status enums shared by the pipeline stages, the analysis sections and the tab badges.
"""
import enum
from typing import Optional


class AnalysisStatus(str, enum.Enum):
    """Processing status of a pipeline stage or an analysis section."""
    unstarted = "unstarted"
    analyzing = "analyzing"
    succeeded = "succeeded"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.succeeded, AnalysisStatus.failed)

    @classmethod
    def from_wire(cls, value: Optional[str]) -> "AnalysisStatus":
        """
        Normalises a status string reported by the analysis service.
        Raises ValueError for anything the service is not known to send.
        """
        if value is None:
            return cls.unstarted
        if not isinstance(value, str):
            raise ValueError(f"Status must be a string or null, got {type(value).__name__}")
        try:
            return _WIRE_STATUSES[value.strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown analysis status: {value!r}")


_WIRE_STATUSES = {
    "": AnalysisStatus.unstarted,
    "pending": AnalysisStatus.unstarted,
    "not_started": AnalysisStatus.unstarted,
    "unstarted": AnalysisStatus.unstarted,
    "analyzing": AnalysisStatus.analyzing,
    "processing": AnalysisStatus.analyzing,
    "success": AnalysisStatus.succeeded,
    "succeeded": AnalysisStatus.succeeded,
    "completed": AnalysisStatus.succeeded,
    "failed": AnalysisStatus.failed,
}


class Badge(str, enum.Enum):
    """Display affordance shown next to a section tab."""
    locked = "locked"
    spinner = "spinner"
    warning = "warning"
    checkmark = "checkmark"


class ProgressPhase(str, enum.Enum):
    """Which step of the three-phase progress view is current."""
    segmentation = "segmentation"
    categorization = "categorization"
    sections = "sections"
