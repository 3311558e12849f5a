"""Ordered runner for named structure upgrades."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from .errors.logging import log_sink
from .errors.reporter import UpgradeReporter
from .status import StructureUpgradeStatus, StructureUpgrader, UpgradeCallable


@dataclass(frozen=True)
class _StepDef:
    name: str
    fn: Callable[..., Any]
    existed_rev: int
    takes_rev: bool
    context: Optional[Mapping[str, Any]]


class UpgradeSequence:
    """
    Runs named upgrades in registration order through one StructureUpgradeStatus.

    Rules
    -----
    - Steps run in the order they were added.
    - Once a step fails, every later step is SKIPPED and never invoked.
    - In run mode, run() returns the latched status.
    - In debug mode, run() raises UpgradeAborted from the first failure after
      the remaining steps are recorded as skipped.

    Usage example
    -------------
        seq = UpgradeSequence(reporter)

        seq.add("users", upgrade_users, existed_rev=3)
        seq.add_callable("orders", lambda: upgrade_orders(conn), existed_rev=3)

        status = seq.run()
        reporter.print_summary()
    """

    def __init__(self, reporter: UpgradeReporter, status: Optional[StructureUpgradeStatus] = None) -> None:
        self._reporter = reporter
        if status is None:
            status = StructureUpgradeStatus(log=log_sink(reporter.logger))
        self._status = status
        self._steps: Dict[str, _StepDef] = {}

    @property
    def status(self) -> StructureUpgradeStatus:
        return self._status

    def _register(self, sdef: _StepDef) -> None:
        if sdef.name in self._steps:
            raise ValueError(f"Duplicate upgrade name: {sdef.name}")
        self._steps[sdef.name] = sdef

    def add(
        self,
        name: str,
        upgrader: StructureUpgrader,
        existed_rev: int,
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Register an upgrader that receives the existing revision."""
        self._register(_StepDef(name=name, fn=upgrader, existed_rev=existed_rev, takes_rev=True, context=context))

    def add_callable(
        self,
        name: str,
        fn: UpgradeCallable,
        existed_rev: int,
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Register a zero-argument upgrade; `existed_rev` is kept for logging."""
        self._register(_StepDef(name=name, fn=fn, existed_rev=existed_rev, takes_rev=False, context=context))

    def run(self) -> StructureUpgradeStatus:
        """
        Execute the registered upgrades in order.

        Returns
        -------
        status
            The shared StructureUpgradeStatus; inspect `changed` and `last_error`.

        Raises
        ------
        UpgradeAborted
            In debug mode, when any upgrade failed.
        """
        status = self._status
        reporter = self._reporter

        for sdef in self._steps.values():
            if status.last_error is not None:
                reporter.mark_skipped(
                    step_name=sdef.name,
                    caused_by=status.failed_structure or "earlier upgrade",
                    existed_rev=sdef.existed_rev,
                    context=sdef.context,
                )
                continue

            if sdef.takes_rev:
                changed, err = status.run_upgrade(sdef.name, sdef.fn, sdef.existed_rev)
            else:
                _, changed, err = status.call(sdef.name, sdef.fn, sdef.existed_rev)

            if err is not None:
                reporter.mark_failed(step_name=sdef.name, exc=err, existed_rev=sdef.existed_rev, context=sdef.context)
            elif changed:
                reporter.mark_changed(sdef.name, existed_rev=sdef.existed_rev)
            else:
                reporter.mark_unchanged(sdef.name, existed_rev=sdef.existed_rev)

        if reporter.cfg.mode == "debug":
            status.raise_if_failed()
        return status
