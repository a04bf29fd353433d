"""
Decides whether section-level analysis is meaningful yet.

Segmentation must succeed before categorization means anything, and both must
succeed before any section status is trusted.
"""
from typing import List

from ..models.pydantic_models import PhaseStep
from ..models.status import AnalysisStatus, ProgressPhase


def effective_categorization(segmentation: AnalysisStatus, categorization: AnalysisStatus) -> AnalysisStatus:
    """Categorization as the monitor sees it: unstarted until segmentation has succeeded."""
    if segmentation is not AnalysisStatus.succeeded:
        return AnalysisStatus.unstarted
    return categorization


def section_work_visible(segmentation: AnalysisStatus, categorization: AnalysisStatus) -> bool:
    return (
        segmentation is AnalysisStatus.succeeded
        and effective_categorization(segmentation, categorization) is AnalysisStatus.succeeded
    )


def stages_settled(segmentation: AnalysisStatus, categorization: AnalysisStatus) -> bool:
    """True once no further stage progress can happen without a new trigger."""
    if segmentation is AnalysisStatus.failed:
        return True
    return segmentation.is_terminal and effective_categorization(segmentation, categorization).is_terminal


def progress_phase(segmentation: AnalysisStatus, categorization: AnalysisStatus) -> ProgressPhase:
    if segmentation is not AnalysisStatus.succeeded:
        return ProgressPhase.segmentation
    if categorization is not AnalysisStatus.succeeded:
        return ProgressPhase.categorization
    return ProgressPhase.sections


def phase_steps(
    segmentation: AnalysisStatus,
    categorization: AnalysisStatus,
    sections: AnalysisStatus = AnalysisStatus.unstarted,
) -> List[PhaseStep]:
    """Ordered rows of the progress view, with the current phase flagged."""
    current = progress_phase(segmentation, categorization)
    statuses = {
        ProgressPhase.segmentation: segmentation,
        ProgressPhase.categorization: effective_categorization(segmentation, categorization),
        ProgressPhase.sections: sections if current is ProgressPhase.sections else AnalysisStatus.unstarted,
    }
    labels = {
        ProgressPhase.segmentation: "Segmenting document",
        ProgressPhase.categorization: "Categorizing content",
        ProgressPhase.sections: "Analyzing sections",
    }
    return [
        PhaseStep(phase=phase, label=labels[phase], status=statuses[phase], current=phase is current)
        for phase in ProgressPhase
    ]
