"""Exception hierarchy for the relocation engine.

Startup errors (ConfigError, PatternError) abort a run before any file
is touched. Everything else is isolated to one entry, one file, or one
owner and aggregated into the run summary.
"""


class StalectlError(Exception):
    """Base class for all stalectl errors."""


class ConfigError(StalectlError):
    """Invalid run configuration (bad flags, destination on another filesystem)."""


class PatternError(ConfigError):
    """Malformed exclude rule.

    Attributes:
        line_number: 1-based line of the offending rule, if known.
        pattern: Raw pattern text.
    """

    def __init__(self, message: str, *, pattern: str = "", line_number: int | None = None) -> None:
        self.pattern = pattern
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class ScanError(StalectlError):
    """I/O failure while reading one entry during traversal."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Cannot read {path}: {cause.strerror or cause}")


class MoveError(StalectlError):
    """Relocation of a single file failed (rename or manifest write)."""


class AllocatorInitError(MoveError):
    """An owner's backup directory could not be prepared.

    Every file belonging to that owner fails with this error; other
    owners are unaffected.
    """

    def __init__(self, uid: int, message: str) -> None:
        self.uid = uid
        super().__init__(f"Cannot prepare backup directory for uid {uid}: {message}")
