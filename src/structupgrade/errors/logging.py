from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from rich.logging import RichHandler

from .config import UpgradeRunConfig

LOGGER_NAME = "structupgrade"

# Fields every record carries in the run log; upgrade calls pass them via `extra`.
_RECORD_DEFAULTS = {"structure": "-", "existed_rev": "-"}

_FILE_FORMAT = "%(asctime)sZ | run=%(run_id)s | %(structure)s@%(existed_rev)s | %(levelname)s | %(message)s"


def upgrade_extra(structure: str, existed_rev: Optional[int] = None) -> dict[str, Any]:
    """Build the `extra` mapping that tags a log record with its upgrade step."""
    return {"structure": structure, "existed_rev": "-" if existed_rev is None else existed_rev}


@dataclass(frozen=True)
class UpgradeEventLog:
    """
    Append-only JSON-lines journal of upgrade step outcomes.

    Usage example
    -------------
        events = UpgradeEventLog(path=Path("logs/events_abc.jsonl"), run_id="abc")
        events.record("failed", "users", existed_rev=3, error=err)
    """
    path: Path
    run_id: str

    def record(
        self,
        outcome: str,
        structure: str,
        *,
        existed_rev: Optional[int] = None,
        error: Optional[BaseException] = None,
        note: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        entry: dict[str, Any] = {
            "time_utc": datetime.now(timezone.utc).isoformat(),
            "run_id": self.run_id,
            "structure": structure,
            "outcome": outcome,
            "existed_rev": existed_rev,
        }
        if note:
            entry["note"] = note
        if context:
            entry["context"] = dict(context)
        if error is not None:
            entry["error"] = {"type": type(error).__name__, "message": str(error)}

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")


class _UpgradeRecordFilter(logging.Filter):
    """Stamps run id and upgrade-step fields onto records that lack them."""

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = self.run_id
        for name, default in _RECORD_DEFAULTS.items():
            if not hasattr(record, name):
                setattr(record, name, default)
        return True


@dataclass(frozen=True)
class RunLogging:
    """
    Logging resources of one upgrade run.

    `cfg.run_id` is already resolved, so every artifact below shares one id.
    """
    cfg: UpgradeRunConfig
    logger: logging.Logger
    events: Optional[UpgradeEventLog] = None

    @property
    def run_id(self) -> str:
        return self.cfg.run_id

    @property
    def log_path(self) -> Path:
        return self.cfg.log_dir / f"run_{self.run_id}.log"

    @property
    def events_path(self) -> Optional[Path]:
        return None if self.events is None else self.events.path


def log_sink(logger: logging.Logger, level: int = logging.ERROR) -> Callable[..., None]:
    """
    Adapt a logger to the ``log(format, *args)`` sink used by StructureUpgradeStatus.

    Usage example
    -------------
        status = StructureUpgradeStatus(log=log_sink(logger))
    """

    def _log(fmt: str, *args: Any) -> None:
        logger.log(level, fmt, *args)

    return _log


def _reset(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.filters.clear()


def configure_logging(*, cfg: UpgradeRunConfig) -> RunLogging:
    """
    Set up the run log (rich console + plain file) and the optional event journal.

    The run id is resolved here once and frozen into the returned config.

    Usage example
    -------------
        run = configure_logging(cfg=cfg)
        run.logger.info("Starting upgrade")
        print(run.log_path)
    """
    cfg = replace(cfg, run_id=cfg.resolved_run_id())
    cfg.log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    _reset(logger)
    logger.setLevel(min(cfg.console_level, cfg.file_level))
    logger.propagate = False
    logger.addFilter(_UpgradeRecordFilter(cfg.run_id))

    console = RichHandler(rich_tracebacks=(cfg.mode == "debug"), show_path=False)
    console.setLevel(cfg.console_level)
    logger.addHandler(console)

    run = RunLogging(
        cfg=cfg,
        logger=logger,
        events=UpgradeEventLog(path=cfg.log_dir / f"events_{cfg.run_id}.jsonl", run_id=cfg.run_id)
        if cfg.write_jsonl
        else None,
    )

    file_handler = logging.FileHandler(run.log_path, encoding="utf-8")
    file_handler.setLevel(cfg.file_level)
    file_handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    logger.addHandler(file_handler)

    logger.debug("Run %s logging to %s", cfg.run_id, run.log_path)
    return run
