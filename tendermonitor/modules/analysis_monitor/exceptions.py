"""
Error taxonomy of the analysis monitor.

Failures the backend reports for a stage or section are not exceptions: they are
the ``failed`` status and stay visible with a retry action.
"""
from datetime import datetime, timezone
from typing import Optional

from .models.sections import SectionId


class MonitorError(Exception):
    """Base class for analysis monitor errors."""


class NetworkError(MonitorError):
    """A request to the analysis service did not complete successfully."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class MalformedSnapshotError(MonitorError):
    """The section-status report is missing fields or has ill-shaped ones."""


class ReanalysisConflictError(MonitorError):
    """A reanalysis request was refused before reaching the analysis service."""

    IN_FLIGHT = "in_flight"
    EXCLUDED = "excluded"

    def __init__(self, section_id: SectionId, reason: str, message: str):
        self.section_id = section_id
        self.reason = reason
        super().__init__(message)


def error_payload(stage: str, err: Exception | str, extra: dict | None = None) -> dict:
    """Builds the one-shot banner payload surfaced to the dashboard."""
    base = {
        "status": "error",
        "error": str(err),
        "stage": stage,
        "timestamp": datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z"),
    }
    if extra:
        base.update(extra)
    return base
