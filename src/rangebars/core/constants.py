"""System-wide constants and enumerations for range bar generation.

This module defines the enumerations, status codes, and default values used
throughout the range bar pipeline. Values here are defaults only; the
configuration file overrides them.
"""

from datetime import time
from decimal import Decimal
from enum import Enum, IntEnum


VERSION: str = "0.1.0"
"""Package version reported by ``--version``."""


# ============================================================================
# Enumerations
# ============================================================================

class ReturnCode(IntEnum):
    """Signed status codes written to the status log.

    - 0: success
    - positive: warning, processing continues
    - negative: error, the archive (or the whole run) is aborted

    The process exit status is the most negative code observed.
    """
    SUCCESSFUL = 0

    # Warnings
    INVALID_ROW = 1
    SHORT_SESSION = 2
    NO_VALID_TICKS = 3
    OUTPUT_EXISTS = 4

    # Archive-level errors
    INVALID_CONTRACT_NAME = -1
    EMPTY_ARCHIVE = -2
    INVALID_HEADER = -3
    ARCHIVE_ENTRY_COUNT = -4
    ARCHIVE_READ_ERROR = -5
    OUTPUT_WRITE_ERROR = -6
    DUPLICATE_CONTRACT = -7

    # Process-level errors
    NO_INPUT_DIRECTORY = -10
    NO_ARCHIVES_FOUND = -11
    LOG_CREATION_FAILED = -12
    INVALID_ARGUMENT = -20

    @property
    def is_error(self) -> bool:
        return self.value < 0

    @property
    def is_warning(self) -> bool:
        return self.value > 0


class OutputMode(str, Enum):
    """Enumeration of output formats.

    - ARCHIVE: zip container holding one CSV entry with a header row
    - FLAT: plain text file, no header, contract column prefixed, volumes summed
    """
    ARCHIVE = "archive"
    FLAT = "flat"


class ShortSessionPolicy(str, Enum):
    """What to do with a session that has fewer bars than the minimum.

    - FLAG: log a warning and emit the session anyway
    - DROP: log a warning and leave the session out of the output
    """
    FLAG = "flag"
    DROP = "drop"


# ============================================================================
# Contract Identity
# ============================================================================

FUTURES_MONTH_CODES: dict = {"H": 3, "M": 6, "U": 9, "Z": 12}
"""Quarterly futures month codes and the calendar month they expire in."""

MAX_FUTURES_ROOT_LENGTH: int = 3
"""Longest accepted futures root symbol (e.g. ES, NQ, RTY)."""

DEFAULT_FUTURES_ROOT: str = "ES"


# ============================================================================
# Input Format Defaults
# ============================================================================

DEFAULT_EXPECTED_HEADER: str = "DateTime,Close,BidVolume,AskVolume"
"""First line every tick file must carry.

Anything else means the export was produced with different columns and the
whole archive is rejected.
"""

DEFAULT_TIMESTAMP_FORMAT: str = "%Y-%m-%d %H:%M:%S"
"""strptime/strftime format of the tick timestamp column."""

MIN_FIELDS_PER_ROW: int = 4
"""timestamp, close, bid volume, ask volume."""

DEFAULT_MIN_PRICE: Decimal = Decimal("90.00")
DEFAULT_MAX_PRICE: Decimal = Decimal("10000.00")


# ============================================================================
# Session Defaults
# ============================================================================

DEFAULT_SESSION_CUTOVER: time = time(16, 30)
"""Local wall-clock time at which one trading session ends and the next begins."""

DEFAULT_MIN_BARS_PER_SESSION: int = 100
"""Sessions with fewer bars than this are reported as short."""


# ============================================================================
# Bar and Label Defaults
# ============================================================================

DEFAULT_TICK_SIZE: Decimal = Decimal("0.25")
"""Minimum price increment of the contract."""

DEFAULT_TICK_RANGE: int = 4
"""Number of tick sizes the price must move beyond to close a range bar."""

DEFAULT_MAX_PERCENT_LOSS: Decimal = Decimal("0.002")
"""Retracement stop for labeling, as a fraction of the bar's own close."""


# ============================================================================
# Output
# ============================================================================

OUTPUT_COLUMNS: tuple = ("timestamp", "close", "bid_volume", "ask_volume", "value")
"""Column order of the canonical CSV output."""

FLAT_COLUMNS: tuple = ("contract", "timestamp", "close", "volume", "value")
"""Column order of the flat text output."""

PRICE_FORMAT: str = "%.2f"
"""Fixed-point format for prices and label values."""

LOG_DIR_NAME: str = "Logs"
"""Sub-directory of the output directory holding status logs."""
