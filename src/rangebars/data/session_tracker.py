"""
Session Tracker - Splits a tick stream into trading sessions.
"""

from datetime import datetime, time, timedelta
from typing import Optional

from ..core.constants import DEFAULT_SESSION_CUTOVER
from ..core.types import Tick, SessionWindow


class SessionTracker:
    """
    Decides whether each tick belongs to the open session or starts a new one.

    A session is anchored to its first tick and ends at the next daily
    cutover (local wall-clock time):
    - anchor before the cutover: session ends at the cutover the same day
    - anchor at or after the cutover: session ends at the cutover the next day

    Single pass, no look-ahead.
    """

    def __init__(self, cutover: time = DEFAULT_SESSION_CUTOVER):
        self.cutover = cutover
        self._window: Optional[SessionWindow] = None

    def session_end_for(self, anchor: datetime) -> datetime:
        """Nominal end of a session anchored at ``anchor``."""
        end = datetime.combine(anchor.date(), self.cutover)
        if anchor.time() >= self.cutover:
            end += timedelta(days=1)
        return end

    def observe(self, tick: Tick) -> bool:
        """
        Feed the next tick.

        Returns:
            True if this tick starts a new session. When a session was
            already open, the caller must close it before handling the tick.
        """
        if self._window is not None and tick.time < self._window.end:
            return False

        self._window = SessionWindow(start=tick.time, end=self.session_end_for(tick.time))
        return True

    @property
    def window(self) -> Optional[SessionWindow]:
        """Current session window, None before the first tick."""
        return self._window
