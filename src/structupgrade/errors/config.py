from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal, Mapping, Optional
import os
import uuid

import yaml


class ConfigError(ValueError):
    """Raised when a configuration file is unreadable or malformed."""


def load_config(root: Path) -> dict[str, Any]:
    """
    Load structupgrade config from a directory if present.

    Search order:
    1) ``structupgrade.yaml``
    2) ``config.yaml``
    """

    for filename in ("structupgrade.yaml", "config.yaml"):
        config_path = root / filename
        if not config_path.exists():
            continue
        try:
            data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as error:
            raise ConfigError(f"Cannot parse {config_path}: {error}") from error
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level.")
        return data
    return {}


def _parse_bool(raw: Any, fallback: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return fallback
    return str(raw).strip() not in ("0", "false", "False", "")


@dataclass(frozen=True)
class UpgradeRunConfig:
    """
    Configuration for logging and failure behavior of an upgrade run.

    Parameters
    ----------
    mode
        "run" returns the latched status after a failure; "debug" raises
        UpgradeAborted from the first failing step once the run is recorded.
    log_dir
        Directory where log files and JSONL event logs are written.
    run_id
        Unique identifier for the run. If "auto", a random hex id is generated.
    console_level
        Logging level for console output.
    file_level
        Logging level for file output.
    write_jsonl
        If True, writes structured JSONL events to <log_dir>/events_<run_id>.jsonl.
    env_prefix
        Prefix for environment-variable overrides, e.g. "STRUCTUPGRADE_".

    Usage example
    -------------
        cfg = UpgradeRunConfig(mode="run", log_dir=Path("logs"))
    """

    mode: Literal["debug", "run"] = "run"
    log_dir: Path = Path("logs")
    run_id: str = "auto"

    console_level: int = 20  # logging.INFO
    file_level: int = 10  # logging.DEBUG

    write_jsonl: bool = True

    env_prefix: str = field(default="", repr=False)

    def resolved_run_id(self) -> str:
        """Return a non-auto run id."""
        if self.run_id != "auto":
            return self.run_id
        return uuid.uuid4().hex[:10]

    @classmethod
    def from_env(cls, *, default: Optional["UpgradeRunConfig"] = None) -> "UpgradeRunConfig":
        """
        Create config from environment variables.

        Supported variables (prefix controlled by env_prefix on `default`):
        - <PFX>ERROR_MODE: "debug" | "run"
        - <PFX>LOG_DIR: path
        - <PFX>WRITE_JSONL: "1"/"0"

        Usage example
        -------------
            cfg = UpgradeRunConfig.from_env(default=UpgradeRunConfig(env_prefix="STRUCTUPGRADE_"))
        """
        base = default if default is not None else cls()
        pfx = base.env_prefix

        mode = os.getenv(f"{pfx}ERROR_MODE", base.mode).strip().lower()
        if mode not in ("debug", "run"):
            mode = base.mode

        log_dir = Path(os.getenv(f"{pfx}LOG_DIR", str(base.log_dir)))
        write_jsonl = _parse_bool(os.getenv(f"{pfx}WRITE_JSONL"), base.write_jsonl)

        return replace(base, mode=mode, log_dir=log_dir, write_jsonl=write_jsonl)  # type: ignore[arg-type]

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        *,
        default: Optional["UpgradeRunConfig"] = None,
    ) -> "UpgradeRunConfig":
        """
        Apply the ``logging`` section of a loaded config file.

        Usage example
        -------------
            cfg = UpgradeRunConfig.from_mapping(load_config(Path.cwd()))
        """
        base = default if default is not None else cls()
        section = data.get("logging")
        if section is None:
            return base
        if not isinstance(section, Mapping):
            raise ConfigError("The 'logging' section must be a mapping.")

        mode = str(section.get("mode", base.mode)).strip().lower()
        if mode not in ("debug", "run"):
            raise ConfigError(f"Invalid logging.mode: {mode!r} (expected 'debug' or 'run').")

        log_dir = base.log_dir
        raw_dir = section.get("log_dir")
        if isinstance(raw_dir, str) and raw_dir.strip():
            log_dir = Path(raw_dir.strip())

        write_jsonl = _parse_bool(section.get("write_jsonl"), base.write_jsonl)
        return replace(base, mode=mode, log_dir=log_dir, write_jsonl=write_jsonl)  # type: ignore[arg-type]

    @classmethod
    def load(cls, root: Path, *, default: Optional["UpgradeRunConfig"] = None) -> "UpgradeRunConfig":
        """
        Build the config for a run started in `root`.

        The config file in `root` is applied first; environment variables override it.

        Usage example
        -------------
            cfg = UpgradeRunConfig.load(Path.cwd(), default=UpgradeRunConfig(env_prefix="STRUCTUPGRADE_"))
        """
        from_file = cls.from_mapping(load_config(root), default=default)
        return cls.from_env(default=from_file)
