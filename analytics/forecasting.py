"""Weekly cash-flow aggregation and running-balance projection."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from analytics.receivables import reschedule_ar_estimate
from analytics.weeks import WeekCalendar, as_timestamp
from core.models import (
    AREstimate,
    EstimateAccuracy,
    EstimateOccurrence,
    Transaction,
    WeeklyCashflow,
)

__all__ = [
    "CASHFLOW_COLUMNS",
    "compute_weekly_cashflows",
    "cashflows_to_frame",
    "estimate_accuracy",
    "ar_scenario_analysis",
    "minimum_balance_week",
]

logger = logging.getLogger(__name__)

CASHFLOW_COLUMNS = [
    "week_number",
    "week_start",
    "week_end",
    "week_status",
    "actual_inflow",
    "actual_outflow",
    "estimated_inflow",
    "estimated_outflow",
    "estimated_ar_inflow",
    "total_inflow",
    "total_outflow",
    "net_cashflow",
    "running_balance",
]

PESSIMISTIC_AR_RATE = 0.7
PESSIMISTIC_AR_DELAY_DAYS = 14


def compute_weekly_cashflows(
    transactions: Sequence[Transaction],
    occurrences: Sequence[EstimateOccurrence],
    starting_balance: float,
    weeks: WeekCalendar,
    *,
    ar_estimates: Optional[Sequence[AREstimate]] = None,
    include_ar: bool = False,
) -> list[WeeklyCashflow]:
    """Blend actuals, estimates and receivables into one row per week.

    Parameters
    ----------
    transactions:
        Categorised, de-duplicated bank transactions. Bucketed by date.
    occurrences:
        Expanded estimate occurrences. Bucketed by week index.
    starting_balance:
        Balance carried into the first window.
    weeks:
        Horizon produced by :func:`analytics.weeks.build_week_calendar`.
    ar_estimates, include_ar:
        Receivable collections, counted as inflow only when ``include_ar``.

    Returns
    -------
    list[WeeklyCashflow]
        One row per window where each running balance equals the previous
        one plus the week's net cash flow.
    """

    tx_frame = _transactions_frame(transactions)
    estimated = _occurrence_totals(occurrences)
    ar_rows = list(ar_estimates or []) if include_ar else []

    rows: list[WeeklyCashflow] = []
    running_balance = float(starting_balance)

    for window in weeks:
        in_window = tx_frame[tx_frame["date"].between(window.start, window.end)]
        actual_inflow = float(in_window.loc[in_window["type"] == "inflow", "amount"].sum())
        actual_outflow = float(in_window.loc[in_window["type"] == "outflow", "amount"].sum())

        estimated_inflow = float(estimated.get((window.number, "inflow"), 0.0))
        estimated_outflow = float(estimated.get((window.number, "outflow"), 0.0))

        week_ar = [estimate for estimate in ar_rows if estimate.week_number == window.number]
        estimated_ar_inflow = float(sum(estimate.amount for estimate in week_ar))

        total_inflow = actual_inflow + estimated_inflow + estimated_ar_inflow
        total_outflow = actual_outflow + estimated_outflow
        net_cashflow = total_inflow - total_outflow
        running_balance += net_cashflow

        rows.append(
            WeeklyCashflow(
                week_number=window.number,
                week_start=window.start,
                week_end=window.end,
                week_status=window.status,
                actual_inflow=actual_inflow,
                actual_outflow=actual_outflow,
                estimated_inflow=estimated_inflow,
                estimated_outflow=estimated_outflow,
                estimated_ar_inflow=estimated_ar_inflow,
                total_inflow=total_inflow,
                total_outflow=total_outflow,
                net_cashflow=net_cashflow,
                running_balance=running_balance,
                transactions=[transactions[position] for position in in_window["position"]],
                occurrences=[occurrence for occurrence in occurrences if occurrence.week_number == window.number],
                ar_estimates=week_ar,
            )
        )

    logger.debug(
        "Recomputed %d weekly rows from %d transaction(s), %d occurrence(s), %d AR estimate(s)",
        len(rows),
        len(transactions),
        len(occurrences),
        len(ar_rows),
    )
    return rows


def cashflows_to_frame(cashflows: Iterable[WeeklyCashflow]) -> pd.DataFrame:
    """Return the forecast as a DataFrame without the per-week detail lists."""

    records = [{column: getattr(row, column) for column in CASHFLOW_COLUMNS} for row in cashflows]
    return pd.DataFrame(records, columns=CASHFLOW_COLUMNS)


def estimate_accuracy(cashflows: Iterable[WeeklyCashflow]) -> list[EstimateAccuracy]:
    """Compare actual against estimated flows for past weeks that had estimates.

    Variances are percentages of the estimate, rounded to two decimals.
    """

    results: list[EstimateAccuracy] = []
    for row in cashflows:
        if row.week_status != "past":
            continue
        if row.estimated_inflow <= 0 and row.estimated_outflow <= 0:
            continue
        results.append(
            {
                "week_number": row.week_number,
                "inflow_variance": _variance(row.actual_inflow, row.estimated_inflow),
                "outflow_variance": _variance(row.actual_outflow, row.estimated_outflow),
            }
        )
    return results


def ar_scenario_analysis(
    transactions: Sequence[Transaction],
    occurrences: Sequence[EstimateOccurrence],
    ar_estimates: Sequence[AREstimate],
    starting_balance: float,
    weeks: WeekCalendar,
) -> dict[str, list[WeeklyCashflow]]:
    """Recompute the forecast under three receivables outlooks.

    ``optimistic`` collects every invoice in full on its estimated date,
    ``realistic`` uses the adjusted estimates as given and ``pessimistic``
    collects 70% of the adjusted amount two weeks later.
    """

    optimistic = [replace(estimate, amount=estimate.original_amount) for estimate in ar_estimates]
    pessimistic = [
        reschedule_ar_estimate(
            estimate,
            weeks,
            amount=estimate.amount * PESSIMISTIC_AR_RATE,
            delay_days=PESSIMISTIC_AR_DELAY_DAYS,
            confidence="low",
        )
        for estimate in ar_estimates
    ]

    scenarios = {
        "optimistic": optimistic,
        "realistic": list(ar_estimates),
        "pessimistic": pessimistic,
    }
    return {
        name: compute_weekly_cashflows(
            transactions,
            occurrences,
            starting_balance,
            weeks,
            ar_estimates=scenario_ar,
            include_ar=True,
        )
        for name, scenario_ar in scenarios.items()
    }


def minimum_balance_week(cashflows: Sequence[WeeklyCashflow]) -> WeeklyCashflow | None:
    """Return the row with the lowest running balance, earliest on ties."""

    if not cashflows:
        return None
    balances = np.array([row.running_balance for row in cashflows], dtype=float)
    return cashflows[int(np.argmin(balances))]


def _transactions_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "position": range(len(transactions)),
            "date": pd.to_datetime([as_timestamp(transaction.date) for transaction in transactions]),
            "type": [transaction.type for transaction in transactions],
            "amount": [transaction.amount for transaction in transactions],
        }
    )
    frame["amount"] = frame["amount"].astype(float)
    return frame


def _occurrence_totals(occurrences: Sequence[EstimateOccurrence]) -> dict[tuple[int, str], float]:
    if not occurrences:
        return {}
    frame = pd.DataFrame(
        {
            "week_number": [occurrence.week_number for occurrence in occurrences],
            "type": [occurrence.type for occurrence in occurrences],
            "amount": [occurrence.amount for occurrence in occurrences],
        }
    )
    frame["amount"] = frame["amount"].astype(float)
    totals = frame.groupby(["week_number", "type"])["amount"].sum()
    return {(int(week), str(kind)): float(value) for (week, kind), value in totals.items()}


def _variance(actual: float, estimated: float) -> float:
    if estimated <= 0:
        return 0.0
    return round((actual - estimated) / estimated * 100, 2)
