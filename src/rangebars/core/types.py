"""Core data types for range bar generation.

This module defines the data structures passed between the pipeline stages
using dataclasses:
- Decimal for all prices and label values (never float)
- naive local datetime for timestamps, as exported by the charting package
- Immutable types are frozen
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from .constants import ReturnCode
from .contract import ContractId


# ============================================================================
# Market Data Types
# ============================================================================

@dataclass(frozen=True)
class Tick:
    """One validated price/volume observation."""
    time: datetime
    close: Decimal
    bid_volume: int
    ask_volume: int

    @property
    def volume(self) -> int:
        return self.bid_volume + self.ask_volume


@dataclass
class RangeBar:
    """
    Price-displacement bar.

    ``time`` and ``close`` are taken from the tick that opened the bar and
    never move afterwards; only the volumes accumulate. ``value`` is the
    forward label, None until the session is labeled.
    """
    time: datetime
    close: Decimal
    bid_volume: int
    ask_volume: int
    value: Optional[Decimal] = None

    @classmethod
    def from_tick(cls, tick: Tick) -> "RangeBar":
        """Open a new bar seeded from a tick."""
        return cls(
            time=tick.time,
            close=tick.close,
            bid_volume=tick.bid_volume,
            ask_volume=tick.ask_volume,
        )

    def absorb(self, tick: Tick) -> None:
        """Fold a tick's volumes into this bar."""
        self.bid_volume += tick.bid_volume
        self.ask_volume += tick.ask_volume

    @property
    def volume(self) -> int:
        """Bid volume + ask volume"""
        return self.bid_volume + self.ask_volume


# ============================================================================
# Session Types
# ============================================================================

@dataclass(frozen=True)
class SessionWindow:
    """Half-open trading session window ``[start, end)``."""
    start: datetime
    end: datetime


@dataclass
class SessionSummary:
    """Outcome of labeling one session."""
    window: SessionWindow
    bar_count: int
    total_value: Decimal
    flagged: bool = False
    dropped: bool = False


# ============================================================================
# Archive Types
# ============================================================================

@dataclass
class ArchiveResult:
    """
    Outcome of processing one input archive.

    Attributes:
        archive: Input archive path
        contract: Parsed contract identity (None if the name was invalid)
        code: Worst status code raised while processing this archive
        lines_read: Data lines read after the header
        ticks_accepted: Rows that passed validation
        rows_rejected: Rows skipped by validation
        sessions_emitted: Sessions written to the output
        sessions_dropped: Short sessions left out of the output
        bars_written: Total bars written
        total_value: Sum of all labels written
        elapsed_seconds: Wall time spent on the archive
        output_path: Final output file (None if nothing was written)
        skipped: True when update-only mode found existing output
    """
    archive: Path
    contract: Optional[ContractId] = None
    code: ReturnCode = ReturnCode.SUCCESSFUL
    lines_read: int = 0
    ticks_accepted: int = 0
    rows_rejected: int = 0
    sessions_emitted: int = 0
    sessions_dropped: int = 0
    bars_written: int = 0
    total_value: Decimal = field(default_factory=lambda: Decimal("0"))
    elapsed_seconds: float = 0.0
    output_path: Optional[Path] = None
    skipped: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.code.is_error
