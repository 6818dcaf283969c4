"""Multi-source protected mirror engine.

Exports the data models and the error hierarchy. The sequencer, mirror
executor and transfer primitives live in their own submodules.
"""

from photobackup.sync.errors import (
    BackupError,
    ConfigurationError,
    ProtectionIntegrityError,
    SourceUnavailableError,
    TransportError,
)
from photobackup.sync.models import (
    MirrorJob,
    ProtectionRule,
    RunState,
    RunSummary,
    SourceTree,
    TransferReport,
)

__all__ = [
    "BackupError",
    "ConfigurationError",
    "MirrorJob",
    "ProtectionIntegrityError",
    "ProtectionRule",
    "RunState",
    "RunSummary",
    "SourceTree",
    "SourceUnavailableError",
    "TransferReport",
    "TransportError",
]
