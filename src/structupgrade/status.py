"""Status tracking for a sequence of structure upgrade steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

UpgradeResult = tuple[bool, Optional[BaseException]]

# Upgrader receives the revision the structure had before this step.
StructureUpgrader = Callable[[int], UpgradeResult]
UpgradeCallable = Callable[[], UpgradeResult]
LogSink = Callable[..., None]


class UpgradeAborted(RuntimeError):
    """Raised when a caller asks to turn a latched upgrade failure into an exception."""

    def __init__(self, message: str, *, structure_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.structure_name = structure_name


@dataclass
class StructureUpgradeStatus:
    """
    Tracks the status of a structure upgrade operation.

    The first error reported by any step is latched in `last_error`. From then on
    every method returns that error without running the given step.

    Usage example
    -------------
        status = StructureUpgradeStatus(log=logger.error)
        changed, err = status.run_upgrade("users", upgrade_users, 3)
        stop, changed, err = status.call("orders", lambda: upgrade_orders(conn), 3)
        if status.last_error is not None:
            return status.last_error
    """

    changed: bool = False
    last_error: Optional[BaseException] = None
    failed_structure: Optional[str] = None
    log: Optional[LogSink] = None

    @property
    def ok(self) -> bool:
        """Return True while no step has failed."""
        return self.last_error is None

    def _log_f(self, fmt: str, *args: Any) -> None:
        if self.log is None:
            return
        self.log(fmt, *args)

    def _invoke(self, fn: Callable[[], UpgradeResult]) -> UpgradeResult:
        try:
            return fn()
        except Exception as exc:
            return False, exc

    def _record(self, structure_name: str, changed: bool, err: Optional[BaseException], existed_rev: Optional[int]) -> None:
        if err is not None:
            self.last_error = err
            self.failed_structure = structure_name
            if existed_rev is None:
                self._log_f("ERR: cannot upgrade [%s]: %s", structure_name, err)
            else:
                self._log_f("ERR: cannot upgrade [%s] from [%d]: %s", structure_name, existed_rev, err)
        if changed:
            self.changed = True

    def run_upgrade(self, structure_name: str, upgrader: StructureUpgrader, existed_rev: int) -> UpgradeResult:
        """
        Call `upgrader` with `existed_rev` and update status with its result.

        If a previous step failed, `upgrader` is not invoked and the stored error
        is returned as ``(False, last_error)``.
        """
        if self.last_error is not None:
            return False, self.last_error
        changed, err = self._invoke(lambda: upgrader(existed_rev))
        self._record(structure_name, changed, err, existed_rev)
        return changed, err

    def call(self, structure_name: str, fn: UpgradeCallable, existed_rev: int) -> tuple[bool, bool, Optional[BaseException]]:
        """
        Invoke `fn` if no previous step failed.

        `existed_rev` is only used for logging. The returned `should_stop` flag is
        True once a step has failed, either in this call or before it.
        """
        if self.last_error is not None:
            return True, False, self.last_error
        changed, err = self._invoke(fn)
        self._record(structure_name, changed, err, existed_rev)
        return err is not None, changed, err

    def push_upgrade_result(self, structure_name: str, changed: bool, err: Optional[BaseException]) -> None:
        """
        Record the result of an upgrade performed outside `run_upgrade`/`call`.

        Callers must check that the status is still error free before running such
        an upgrade; this method only records the outcome and ignores it when a
        previous step already failed.
        """
        if self.last_error is not None:
            return
        self._record(structure_name, changed, err, None)

    def raise_if_failed(self) -> None:
        """Raise `UpgradeAborted` chained from the latched error, if any."""
        if self.last_error is None:
            return
        raise UpgradeAborted(
            f"structure upgrade aborted: {self.last_error}",
            structure_name=self.failed_structure,
        ) from self.last_error
