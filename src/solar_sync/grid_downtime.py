"""
Grid Downtime Calculator

Estimates the solar energy a plant could have produced while the grid was
down. Only the productive window (09:00-16:00 local time) counts; an outage
spanning several days contributes its overlap with each day's window.
"""

from datetime import datetime, time, timedelta, tzinfo
from typing import Optional

from .config import IST
from .time_utils import ensure_aware

# Fixed derating of rated capacity during the productive window
DERATING_FACTOR = 0.5


class GridDowntimeCalculator:
    """
    Overlap and benefit calculations in one fixed timezone.

    Naive datetimes are taken as local time in that timezone.
    """

    def __init__(
        self,
        local_tz: tzinfo = IST,
        window_start: time = time(9, 0),
        window_end: time = time(16, 0)
    ):
        self.local_tz = local_tz
        self.window_start = window_start
        self.window_end = window_end

    def _local(self, value: datetime) -> datetime:
        return ensure_aware(value, self.local_tz).astimezone(self.local_tz)

    def hours_within_window(self, start: Optional[datetime], end: Optional[datetime]) -> float:
        """Total hours of ``[start, end)`` inside each day's productive window."""
        if start is None or end is None:
            return 0.0
        start_local = self._local(start)
        end_local = self._local(end)
        if end_local <= start_local:
            return 0.0

        total = timedelta(0)
        day = start_local.date()
        while day <= end_local.date():
            window_open = datetime.combine(day, self.window_start, tzinfo=self.local_tz)
            window_close = datetime.combine(day, self.window_end, tzinfo=self.local_tz)
            overlap_start = max(start_local, window_open)
            overlap_end = min(end_local, window_close)
            if overlap_end > overlap_start:
                total += overlap_end - overlap_start
            day += timedelta(days=1)

        return total.total_seconds() / 3600

    def benefit_kwh(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        capacity_kw: Optional[float]
    ) -> Optional[float]:
        """
        Estimated lost production in kWh.

        Returns None when a timestamp is missing, ``end <= start``, capacity
        is missing or not positive, or the outage never touches the window.
        """
        if start is None or end is None:
            return None
        if capacity_kw is None or capacity_kw <= 0:
            return None
        if self._local(end) <= self._local(start):
            return None

        hours = self.hours_within_window(start, end)
        if hours <= 0:
            return None
        return round(DERATING_FACTOR * hours * capacity_kw, 3)

    def grid_down_seconds(self, start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
        if start is None or end is None:
            return None
        seconds = int((self._local(end) - self._local(start)).total_seconds())
        return seconds if seconds > 0 else None
