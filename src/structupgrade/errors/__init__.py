"""
errors subpackage: logging, configuration and reporting around upgrade runs.

Key primitives
--------------
- UpgradeRunConfig: run config; UpgradeRunConfig.load(root) applies
  structupgrade.yaml (load_config + from_mapping) and then env overrides (from_env)
- configure_logging(): rich console + run log file + optional JSONL journal,
  returned as RunLogging with the run id resolved once
- log_sink(): adapts a logger to the StructureUpgradeStatus log sink
- UpgradeReporter: captures per-step outcomes and renders end-of-run report
"""

from .config import ConfigError, UpgradeRunConfig, load_config
from .logging import RunLogging, UpgradeEventLog, configure_logging, log_sink, upgrade_extra
from .reporter import UpgradeReporter
from .types import StepRecord, StepStatus

__all__ = [
    "ConfigError",
    "UpgradeRunConfig",
    "load_config",
    "RunLogging",
    "UpgradeEventLog",
    "configure_logging",
    "log_sink",
    "upgrade_extra",
    "UpgradeReporter",
    "StepRecord",
    "StepStatus",
]
