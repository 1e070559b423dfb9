"""Weekly window helpers shared by every forecasting stage."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterator, Union

import pandas as pd

from core.models import WeekStatus, WeekWindow

__all__ = [
    "DateLike",
    "as_timestamp",
    "WeekCalendar",
    "build_week_calendar",
    "resolve_week_start",
    "is_date_in_week",
]

DateLike = Union[pd.Timestamp, datetime, date, str]

_WEEK = pd.Timedelta(days=7)
_END_OFFSET = _WEEK - pd.Timedelta(microseconds=1)


def as_timestamp(value: DateLike) -> pd.Timestamp:
    """Return ``value`` as a tz-naive timestamp, keeping its wall-clock time.

    Windows are tz-naive, so offsets such as ``Z`` or ``+02:00`` are dropped
    before any comparison.
    """

    stamp = pd.Timestamp(value)
    if stamp.tzinfo is not None:
        stamp = stamp.tz_localize(None)
    return stamp


def resolve_week_start(value: DateLike, week_start_day: int = 0) -> pd.Timestamp:
    """Return midnight of the first day of the week containing ``value``.

    ``week_start_day`` follows :meth:`datetime.weekday` (Monday is ``0``).
    """

    day = as_timestamp(value).normalize()
    offset = (day.weekday() - week_start_day) % 7
    return day - pd.Timedelta(days=offset)


def is_date_in_week(value: DateLike, window_start: DateLike) -> bool:
    """Return ``True`` when ``value`` lies inside the 7-day window starting at ``window_start``."""

    start = as_timestamp(window_start).normalize()
    moment = as_timestamp(value)
    return start <= moment <= start + _END_OFFSET


@dataclass(frozen=True)
class WeekCalendar:
    """Ordered, contiguous weekly windows anchored to a reference day."""

    windows: tuple[WeekWindow, ...]
    anchor: pd.Timestamp

    def __iter__(self) -> Iterator[WeekWindow]:
        return iter(self.windows)

    def __len__(self) -> int:
        return len(self.windows)

    @property
    def first_index(self) -> int:
        return self.windows[0].number

    @property
    def last_index(self) -> int:
        return self.windows[-1].number

    @property
    def start(self) -> pd.Timestamp:
        return self.windows[0].start

    @property
    def end(self) -> pd.Timestamp:
        return self.windows[-1].end

    @property
    def indices(self) -> list[int]:
        return [window.number for window in self.windows]

    def window(self, index: int) -> WeekWindow:
        return self.windows[index - self.first_index]

    def contains(self, value: DateLike) -> bool:
        moment = as_timestamp(value)
        return self.start <= moment <= self.end

    def week_index_for_date(self, value: DateLike) -> int:
        """Return the index of the window containing ``value``.

        Dates past the horizon are clamped forward to the last window and
        dates before it to the first, so every date resolves to an index.
        """

        moment = as_timestamp(value)
        if moment > self.end:
            return self.last_index
        if moment < self.start:
            return self.first_index
        offset = (moment.normalize() - self.start).days // 7
        return self.first_index + int(offset)

    def clamp_index(self, index: int) -> int:
        return max(self.first_index, min(int(index), self.last_index))


def build_week_calendar(
    today: DateLike | None = None,
    *,
    week_start_day: int = 0,
    past_weeks: int = 1,
    future_weeks: int = 12,
) -> WeekCalendar:
    """Build the rolling horizon around the week containing ``today``.

    Parameters
    ----------
    today:
        Anchor date; defaults to the current local day.
    week_start_day:
        Weekday that opens each window (Monday is ``0``).
    past_weeks, future_weeks:
        Number of windows before and after the anchor week. The defaults give
        thirteen windows indexed ``-1`` through ``12``.

    Returns
    -------
    WeekCalendar
        Windows covering ``[start, start + 6 days 23:59:59.999999]`` each.
    """

    if not 0 <= week_start_day <= 6:
        raise ValueError("week_start_day must be between 0 (Monday) and 6 (Sunday)")
    if past_weeks < 0 or future_weeks < 0:
        raise ValueError("past_weeks and future_weeks must be non-negative")

    anchor = pd.Timestamp.now().normalize() if today is None else as_timestamp(today).normalize()
    anchor_start = resolve_week_start(anchor, week_start_day)

    windows: list[WeekWindow] = []
    for number in range(-past_weeks, future_weeks + 1):
        start = anchor_start + number * _WEEK
        windows.append(
            WeekWindow(
                number=number,
                start=start,
                end=start + _END_OFFSET,
                status=_status_for(number),
            )
        )

    return WeekCalendar(windows=tuple(windows), anchor=anchor)


def _status_for(number: int) -> WeekStatus:
    if number < 0:
        return "past"
    if number == 0:
        return "current"
    return "future"
