"""
Data Layer - Tick ingestion and range bar construction.

Main Components:
    ArchiveProcessor: Runs the full pipeline for one contract archive
    TickValidator: Parses and validates raw tick rows
    SessionTracker: Splits the tick stream at the daily cutover
    RangeBarAggregator: Builds price-displacement bars from ticks
"""

from .archive_processor import ArchiveProcessor
from .tick_validator import TickValidator
from .session_tracker import SessionTracker
from .range_bar_aggregator import RangeBarAggregator

__all__ = [
    "ArchiveProcessor",
    "TickValidator",
    "SessionTracker",
    "RangeBarAggregator",
]
