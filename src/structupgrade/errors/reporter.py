from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from rich.console import Console

from .config import UpgradeRunConfig
from .logging import RunLogging, configure_logging, upgrade_extra
from .types import StepRecord, StepStatus


@dataclass
class UpgradeReporter:
    """
    Collects upgrade step outcomes and renders end-of-run summaries.

    Design notes
    ------------
    - StructureUpgradeStatus decides what runs; the reporter only records what happened.
    - Failures are logged by the status' own sink; the reporter adds the journal entry
      and the traceback, if any.

    Usage example
    -------------
        reporter = UpgradeReporter.from_config(cfg)
        reporter.mark_changed("users", existed_rev=3)
        reporter.mark_failed(step_name="orders", exc=err, existed_rev=3)
        reporter.print_summary()
    """

    run: RunLogging
    _records: list[StepRecord] = field(default_factory=list, init=False, repr=False)
    _status: dict[str, StepStatus] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def from_config(cls, cfg: UpgradeRunConfig) -> "UpgradeReporter":
        """Configure logging for `cfg` and return a reporter bound to that run."""
        return cls(run=configure_logging(cfg=cfg))

    @property
    def cfg(self) -> UpgradeRunConfig:
        return self.run.cfg

    @property
    def logger(self) -> logging.Logger:
        return self.run.logger

    @property
    def run_id(self) -> str:
        return self.run.run_id

    def status(self, step_name: str) -> Optional[StepStatus]:
        """Return the recorded status for a step, if present."""
        return self._status.get(step_name)

    def failed(self, step_name: str) -> bool:
        return self._status.get(step_name) == StepStatus.FAILED

    def skipped(self, step_name: str) -> bool:
        return self._status.get(step_name) == StepStatus.SKIPPED

    def changed_count(self) -> int:
        """Return the number of steps that changed the structure."""
        return sum(1 for s in self._status.values() if s == StepStatus.CHANGED)

    def has_failures(self) -> bool:
        return StepStatus.FAILED in self._status.values()

    def _set(
        self,
        step_name: str,
        status: StepStatus,
        *,
        existed_rev: Optional[int],
        error: Optional[BaseException] = None,
        note: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self._status[step_name] = status
        if self.run.events is not None:
            self.run.events.record(
                status.value,
                step_name,
                existed_rev=existed_rev,
                error=error,
                note=note,
                context=context,
            )

    def mark_changed(self, step_name: str, *, existed_rev: Optional[int] = None) -> None:
        """Record a step that changed the structure."""
        self.logger.info("structure changed", extra=upgrade_extra(step_name, existed_rev))
        self._set(step_name, StepStatus.CHANGED, existed_rev=existed_rev)

    def mark_unchanged(self, step_name: str, *, existed_rev: Optional[int] = None) -> None:
        """Record a step that ran without changing the structure."""
        self.logger.debug("already up to date", extra=upgrade_extra(step_name, existed_rev))
        self._set(step_name, StepStatus.UNCHANGED, existed_rev=existed_rev)

    def mark_skipped(
        self,
        *,
        step_name: str,
        caused_by: str,
        existed_rev: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Record a step that was not run because an earlier step failed."""
        rec = StepRecord(
            step_name=step_name,
            status=StepStatus.SKIPPED,
            message=f"Skipped because upgrade '{caused_by}' failed.",
            existed_rev=existed_rev,
            context=context,
            caused_by=caused_by,
        )
        self._records.append(rec)
        self.logger.warning("skipped after [%s] failed", caused_by, extra=upgrade_extra(step_name, existed_rev))
        self._set(step_name, StepStatus.SKIPPED, existed_rev=existed_rev, note=rec.message, context=context)

    def mark_failed(
        self,
        *,
        step_name: str,
        exc: BaseException,
        existed_rev: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Record a failed step and its error details."""
        rec = StepRecord.from_error(step_name=step_name, exc=exc, existed_rev=existed_rev, context=context)
        self._records.append(rec)
        if rec.traceback is not None:
            self.logger.debug("traceback:\n%s", rec.traceback, extra=upgrade_extra(step_name, existed_rev))
        self._set(step_name, StepStatus.FAILED, existed_rev=existed_rev, error=exc, context=context)

    def render_summary(self) -> str:
        """Render a human-readable summary with details and artifact paths."""
        counts = {s: 0 for s in StepStatus}
        for s in self._status.values():
            counts[s] += 1

        lines = [
            f"Upgrade summary (run_id={self.run_id}, mode={self.cfg.mode})",
            f"  CHANGED:   {counts[StepStatus.CHANGED]}",
            f"  UNCHANGED: {counts[StepStatus.UNCHANGED]}",
            f"  FAIL:      {counts[StepStatus.FAILED]}",
            f"  SKIP:      {counts[StepStatus.SKIPPED]}",
        ]
        if not self._records:
            return "\n".join(lines)

        lines += ["", "Details:"]
        for rec in self._records:
            if rec.status == StepStatus.FAILED:
                lines.append(f"  - FAIL {rec.step_name}: {rec.exc_type}: {rec.message}")
            else:
                lines.append(f"  - SKIP {rec.step_name}: {rec.message}")

        lines += ["", "Artifacts:", f"  - {self.run.log_path}"]
        if self.run.events_path is not None:
            lines.append(f"  - {self.run.events_path}")
        return "\n".join(lines)

    def print_summary(self, console: Optional[Console] = None) -> None:
        """Print the summary through Rich."""
        (console or Console()).print(self.render_summary(), markup=False, highlight=False)

    def exit_code(self) -> int:
        """Return a conventional process exit code: 0 if success, else 1."""
        return 1 if self.has_failures() else 0
