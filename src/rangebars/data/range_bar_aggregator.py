"""
Range Bar Aggregator - Builds price-displacement bars from ticks.
"""

from decimal import Decimal
from typing import List, Optional

from ..core.constants import DEFAULT_TICK_SIZE, DEFAULT_TICK_RANGE
from ..core.types import Tick, RangeBar


class RangeBarAggregator:
    """
    Builds range bars for one session at a time.

    A bar is opened by a tick and keeps that tick's time and price as its
    reference. Later ticks within ``threshold`` of the reference only add
    their volumes; the first tick beyond it closes the bar and opens the
    next one. Every tick ends up in exactly one bar.
    """

    def __init__(self, tick_size: Decimal = DEFAULT_TICK_SIZE, tick_range: int = DEFAULT_TICK_RANGE):
        self.tick_size = tick_size
        self.tick_range = tick_range
        self.threshold: Decimal = tick_size * tick_range

        self.current_bar: Optional[RangeBar] = None
        self.bars: List[RangeBar] = []

    @property
    def has_open_bar(self) -> bool:
        return self.current_bar is not None

    def start_session(self, tick: Tick) -> None:
        """
        Begin a new session anchored at ``tick``.

        Any unfinished session must have been drained with finish_session().
        """
        if self.current_bar is not None:
            raise RuntimeError("start_session() called while a session is still open")
        self.current_bar = RangeBar.from_tick(tick)

    def update(self, tick: Tick) -> Optional[RangeBar]:
        """
        Fold a tick into the open session.

        Args:
            tick: Next tick, in arrival order

        Returns:
            Completed RangeBar if this tick closed one, None otherwise
        """
        if self.current_bar is None:
            self.start_session(tick)
            return None

        if abs(tick.close - self.current_bar.close) > self.threshold:
            completed_bar = self.current_bar
            self.bars.append(completed_bar)
            self.current_bar = RangeBar.from_tick(tick)
            return completed_bar

        self.current_bar.absorb(tick)
        return None

    def finish_session(self) -> List[RangeBar]:
        """
        Close the session.

        The in-progress bar is always appended, however few ticks it holds.

        Returns:
            The session's bars in time order; ownership passes to the caller
        """
        if self.current_bar is not None:
            self.bars.append(self.current_bar)

        bars = self.bars
        self.bars = []
        self.current_bar = None
        return bars
