"""Validation and week-by-week expansion of estimate templates."""

from __future__ import annotations

import calendar
import logging
from typing import Callable, Iterable, Mapping

import pandas as pd

from analytics.weeks import WeekCalendar
from core.models import Estimate, EstimateOccurrence

__all__ = [
    "EstimateValidationError",
    "RECURRENCE_EXPANDERS",
    "validate_estimate",
    "expand_estimate",
    "expand_estimates",
    "clamp_day_of_month",
]

logger = logging.getLogger(__name__)

Expander = Callable[[Estimate, WeekCalendar], list[EstimateOccurrence]]


class EstimateValidationError(ValueError):
    """Raised when an estimate template cannot be expanded."""


def validate_estimate(estimate: Estimate) -> Estimate:
    """Return ``estimate`` unchanged or raise :class:`EstimateValidationError`."""

    if estimate.type not in ("inflow", "outflow"):
        raise EstimateValidationError(f"Unknown estimate direction: {estimate.type!r}")
    if not estimate.amount > 0:
        raise EstimateValidationError("Estimate amount must be a positive number")

    if not estimate.is_recurring:
        return estimate

    if estimate.recurring_type not in RECURRENCE_EXPANDERS:
        raise EstimateValidationError(f"Unknown recurrence kind: {estimate.recurring_type!r}")

    if estimate.recurring_type == "monthly":
        day = estimate.day_of_month
        if day is None:
            raise EstimateValidationError("Monthly estimates require a day of month")
        if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= 31:
            raise EstimateValidationError(f"Day of month must be between 1 and 31, got {day!r}")

    return estimate


def clamp_day_of_month(year: int, month: int, day: int) -> pd.Timestamp:
    """Return ``day`` of the given month, or the month's last day when it is shorter."""

    last_day = calendar.monthrange(year, month)[1]
    return pd.Timestamp(year=year, month=month, day=min(day, last_day))


def expand_estimate(estimate: Estimate, weeks: WeekCalendar) -> list[EstimateOccurrence]:
    """Place ``estimate`` into every week of the horizon it applies to.

    Templates are assumed to have passed :func:`validate_estimate`.
    """

    if not estimate.is_recurring:
        return _expand_single(estimate, weeks)

    expander = RECURRENCE_EXPANDERS[estimate.recurring_type]  # type: ignore[index]
    occurrences = expander(estimate, weeks)
    logger.debug(
        "Expanded %s estimate %s into %d occurrence(s)",
        estimate.recurring_type,
        estimate.id,
        len(occurrences),
    )
    return occurrences


def expand_estimates(estimates: Iterable[Estimate], weeks: WeekCalendar) -> list[EstimateOccurrence]:
    occurrences: list[EstimateOccurrence] = []
    for estimate in estimates:
        occurrences.extend(expand_estimate(estimate, weeks))
    return occurrences


def _occurrence(estimate: Estimate, week_number: int, when: pd.Timestamp | None = None) -> EstimateOccurrence:
    return EstimateOccurrence(
        estimate_id=estimate.id,
        week_number=week_number,
        type=estimate.type,
        amount=float(estimate.amount),
        category=estimate.category,
        description=estimate.description,
        date=when,
    )


def _expand_single(estimate: Estimate, weeks: WeekCalendar) -> list[EstimateOccurrence]:
    if not weeks.first_index <= estimate.week_number <= weeks.last_index:
        return []
    return [_occurrence(estimate, estimate.week_number)]


def _expand_every(step: int) -> Expander:
    def expand(estimate: Estimate, weeks: WeekCalendar) -> list[EstimateOccurrence]:
        start = estimate.week_number
        # Keep the cadence phase when the template starts before the horizon.
        while start < weeks.first_index:
            start += step
        return [_occurrence(estimate, number) for number in range(start, weeks.last_index + 1, step)]

    return expand


def _expand_monthly(estimate: Estimate, weeks: WeekCalendar) -> list[EstimateOccurrence]:
    day = int(estimate.day_of_month)  # type: ignore[arg-type]
    occurrences: list[EstimateOccurrence] = []

    for period in pd.period_range(weeks.start, weeks.end, freq="M"):
        when = clamp_day_of_month(period.year, period.month, day)
        if not weeks.contains(when):
            continue
        occurrences.append(_occurrence(estimate, weeks.week_index_for_date(when), when))

    return occurrences


RECURRENCE_EXPANDERS: Mapping[str, Expander] = {
    "weekly": _expand_every(1),
    "bi-weekly": _expand_every(2),
    "monthly": _expand_monthly,
}
