"""Status tracking for ordered, idempotent structure upgrades."""

from .status import (
    StructureUpgradeStatus,
    StructureUpgrader,
    UpgradeAborted,
    UpgradeCallable,
)
from .sequence import UpgradeSequence
from .version import __version__

__all__ = [
    "StructureUpgradeStatus",
    "StructureUpgrader",
    "UpgradeAborted",
    "UpgradeCallable",
    "UpgradeSequence",
    "__version__",
]
