from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional
import traceback as _traceback


class StepStatus(str, Enum):
    """Outcome of a named upgrade step."""
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepRecord:
    """
    A structured record of an upgrade step that failed or was skipped.

    Usage example
    -------------
        rec = StepRecord(step_name="users", status=StepStatus.FAILED, message="boom", existed_rev=3)
    """
    step_name: str
    status: StepStatus
    message: str
    existed_rev: Optional[int] = None
    exc_type: Optional[str] = None
    traceback: Optional[str] = None
    context: Optional[Mapping[str, Any]] = None
    caused_by: Optional[str] = None  # for SKIPPED: the step whose failure latched the run

    @staticmethod
    def from_error(
        *,
        step_name: str,
        exc: BaseException,
        existed_rev: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> "StepRecord":
        tb: Optional[str] = None
        if exc.__traceback__ is not None:
            tb = "".join(_traceback.format_exception(type(exc), exc, exc.__traceback__))
        return StepRecord(
            step_name=step_name,
            status=StepStatus.FAILED,
            message=str(exc),
            existed_rev=existed_rev,
            exc_type=type(exc).__name__,
            traceback=tb,
            context=context,
        )
