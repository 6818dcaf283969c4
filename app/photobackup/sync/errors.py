"""Exception hierarchy for backup runs.

Every error raised by the sync engine derives from BackupError so the
CLI can report it and exit non-zero in one place.
"""


class BackupError(Exception):
    """Base exception for backup run errors."""


class ConfigurationError(BackupError):
    """Raised when a required setting is missing or invalid."""


class SourceUnavailableError(BackupError):
    """Raised when a source is missing, unmounted, unreadable, or empty."""


class ProtectionIntegrityError(BackupError):
    """Raised when the protection rules cannot be built or are empty.

    An empty rule set with more than one source would let one source's
    delete pass remove every file owned by the others.
    """


class TransportError(BackupError):
    """Raised when the transfer primitive fails during a mirror pass.

    Attributes:
        returncode: Exit code of the transfer command, if one ran.
    """

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode
