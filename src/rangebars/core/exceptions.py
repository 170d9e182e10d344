"""Exception hierarchy for range bar generation.

All exceptions inherit from RangeBarError. Archive-level errors additionally
carry the ReturnCode that is written to the status log when they abort an
archive.
"""

from typing import Any, Dict

from .constants import ReturnCode


class RangeBarError(Exception):
    """Base exception for all range bar errors.

    All custom exceptions in the package inherit from this class,
    allowing for easy catching of any pipeline related errors.
    """

    code: ReturnCode = ReturnCode.SUCCESSFUL

    def __init__(self, message: str, **context: Any):
        """Initialize the exception with a message and optional context.

        Args:
            message: Error message describing what went wrong
            **context: Additional context information for logging and debugging
        """
        super().__init__(message)
        self.context: Dict[str, Any] = context

    def __str__(self) -> str:
        """Return string representation including context."""
        if self.context:
            ctx = ', '.join(f'{k}={v}' for k, v in self.context.items())
            return f"{super().__str__()} [{ctx}]"
        return super().__str__()


# ============================================================================
# Configuration Exceptions
# ============================================================================

class InvalidConfigError(RangeBarError):
    """Raised when configuration or command line values are invalid.

    Examples are a futures root longer than three characters, a
    non-positive tick size or an unknown output mode.
    """

    code = ReturnCode.INVALID_ARGUMENT


# ============================================================================
# Row Exceptions
# ============================================================================

class InvalidRowError(RangeBarError):
    """Raised when a single tick row fails validation.

    Row-level: the row is logged and skipped, the archive continues.
    Context always carries ``line``, ``field`` and ``value``.
    """

    code = ReturnCode.INVALID_ROW


# ============================================================================
# Archive Exceptions
# ============================================================================

class ArchiveError(RangeBarError):
    """Base class for errors that abort processing of one archive.

    Other archives are unaffected; the run's exit status becomes the
    error's code.
    """

    code = ReturnCode.ARCHIVE_READ_ERROR


class InvalidContractNameError(ArchiveError):
    """Raised when an archive filename is not ``{root}{month}{yy}``."""

    code = ReturnCode.INVALID_CONTRACT_NAME


class EmptyArchiveError(ArchiveError):
    """Raised when the tick file has no header line at all."""

    code = ReturnCode.EMPTY_ARCHIVE


class InvalidHeaderError(ArchiveError):
    """Raised when the tick file header does not match the expected columns."""

    code = ReturnCode.INVALID_HEADER


class ArchiveEntryCountError(ArchiveError):
    """Raised when a zip container does not hold exactly one entry."""

    code = ReturnCode.ARCHIVE_ENTRY_COUNT


class OutputWriteError(ArchiveError):
    """Raised when the output for an archive cannot be written."""

    code = ReturnCode.OUTPUT_WRITE_ERROR


# ============================================================================
# Boundary Exceptions
# ============================================================================

class InputDirectoryError(RangeBarError):
    """Raised when the input directory is missing or holds no archives.

    This terminates the whole run before any archive is processed.
    """

    code = ReturnCode.NO_INPUT_DIRECTORY

    def __init__(self, message: str, code: ReturnCode = ReturnCode.NO_INPUT_DIRECTORY, **context: Any):
        super().__init__(message, **context)
        self.code = code
