"""
Forward Labeler - Attaches a look-ahead value to every range bar.

For the bar at index i the label is the largest rise of a later bar's close
above bars[i].close, scanning forward until the price falls back more than
a fixed number of points below the best rise seen so far. The stop distance
is ``max_percent_loss * bars[i].close``: it is fixed once per starting bar
and does not trail the peak.

Labels are computed on bar closes, not raw ticks, so bar-internal noise
never triggers the stop.
"""

from decimal import Decimal
from typing import List

from ..core.constants import (
    ShortSessionPolicy,
    DEFAULT_MAX_PERCENT_LOSS, DEFAULT_MIN_BARS_PER_SESSION,
)
from ..core.types import RangeBar, SessionWindow, SessionSummary


ZERO = Decimal("0")


def forward_value(bars: List[RangeBar], index: int, max_percent_loss: Decimal) -> Decimal:
    """
    Label for a single bar.

    Args:
        bars: Session bars in time order
        index: Position of the starting bar
        max_percent_loss: Stop distance as a fraction of the starting close

    Returns:
        Maximum excursion above the starting close before the stop, >= 0
    """
    starting_price = bars[index].close
    max_value = ZERO
    max_point_loss = max_percent_loss * starting_price

    for j in range(index + 1, len(bars)):
        excursion = bars[j].close - starting_price
        if excursion > max_value:
            max_value = excursion
        elif (max_value - excursion) > max_point_loss:
            break

    return max_value


class ForwardLabeler:
    """
    Labels finished sessions.

    Cost is O(n^2) per session in the worst case (n = bars), bounded by the
    size of a trading day.
    """

    def __init__(
        self,
        max_percent_loss: Decimal = DEFAULT_MAX_PERCENT_LOSS,
        min_bars_per_session: int = DEFAULT_MIN_BARS_PER_SESSION,
        short_session_policy: ShortSessionPolicy = ShortSessionPolicy.FLAG
    ):
        self.max_percent_loss = max_percent_loss
        self.min_bars_per_session = min_bars_per_session
        self.short_session_policy = short_session_policy

    def label(self, bars: List[RangeBar]) -> List[RangeBar]:
        """
        Fill in ``value`` for every bar, in place.

        Returns:
            The same list, for chaining
        """
        for i in range(len(bars)):
            bars[i].value = forward_value(bars, i, self.max_percent_loss)
        return bars

    def is_short_session(self, bars: List[RangeBar]) -> bool:
        """True if the session has fewer bars than the configured minimum."""
        return len(bars) < self.min_bars_per_session

    def summarize(self, window: SessionWindow, bars: List[RangeBar]) -> SessionSummary:
        """
        Describe a labeled session and apply the short-session policy.

        ``dropped`` is set only when the session is short and the policy is
        DROP; the caller decides what to log and whether to emit.
        """
        flagged = self.is_short_session(bars)
        total_value = sum((bar.value for bar in bars if bar.value is not None), ZERO)

        return SessionSummary(
            window=window,
            bar_count=len(bars),
            total_value=total_value,
            flagged=flagged,
            dropped=flagged and self.short_session_policy == ShortSessionPolicy.DROP,
        )
