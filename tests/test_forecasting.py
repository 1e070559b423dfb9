from __future__ import annotations

from dataclasses import replace

import pandas as pd
import pytest

from analytics.forecasting import (
    CASHFLOW_COLUMNS,
    ar_scenario_analysis,
    cashflows_to_frame,
    compute_weekly_cashflows,
    estimate_accuracy,
    minimum_balance_week,
)
from analytics.receivables import ARConfig, ar_contribution_summary, build_ar_estimates
from analytics.recurring import expand_estimate
from core.models import Estimate, EstimateOccurrence, ReceivableInvoice


def _payroll_template() -> Estimate:
    return Estimate(
        id="payroll",
        type="outflow",
        amount=2_000.0,
        category="Payroll",
        description="Weekly payroll",
        week_number=0,
        is_recurring=True,
        recurring_type="weekly",
    )


def _by_week(rows):
    return {row.week_number: row for row in rows}


def test_actuals_and_recurring_estimates_roll_forward(weeks, make_transaction):
    deposit = make_transaction("2024-03-12", 10_000.0, "inflow")
    occurrences = expand_estimate(_payroll_template(), weeks)

    rows = _by_week(compute_weekly_cashflows([deposit], occurrences, 50_000.0, weeks))

    assert rows[-1].net_cashflow == 0.0
    assert rows[-1].running_balance == pytest.approx(50_000.0)
    assert rows[0].net_cashflow == pytest.approx(8_000.0)
    assert rows[0].running_balance == pytest.approx(58_000.0)
    assert rows[0].transactions == [deposit]
    assert rows[1].net_cashflow == pytest.approx(-2_000.0)
    assert rows[1].running_balance == pytest.approx(56_000.0)


def test_empty_inputs_yield_flat_zero_rows(weeks):
    rows = compute_weekly_cashflows([], [], 12_345.0, weeks)

    assert len(rows) == len(weeks)
    assert all(row.net_cashflow == 0.0 for row in rows)
    assert all(row.running_balance == pytest.approx(12_345.0) for row in rows)


def test_running_balance_invariant(weeks, make_transaction):
    transactions = [
        make_transaction("2024-03-05", 700.0, "outflow", "RENT PAYMENT"),
        make_transaction("2024-03-14", 1_500.0, "inflow", "STRIPE PAYOUT"),
        make_transaction("2024-04-02", 300.0, "outflow", "IRS"),
        make_transaction("2024-05-20", 4_000.0, "inflow", "WIRE FROM GLOBEX"),
    ]
    occurrences = expand_estimate(_payroll_template(), weeks)
    rows = compute_weekly_cashflows(transactions, occurrences, 1_000.0, weeks)

    assert rows[0].running_balance == pytest.approx(1_000.0 + rows[0].net_cashflow)
    for previous, current in zip(rows, rows[1:]):
        assert current.running_balance == pytest.approx(previous.running_balance + current.net_cashflow)


def test_window_edges_are_inclusive(weeks, make_transaction):
    late_sunday = make_transaction("2024-03-17 23:59:59", 100.0, "inflow")
    monday = make_transaction("2024-03-18 00:00:00", 40.0, "inflow", "GLOBEX WIRE")

    rows = _by_week(compute_weekly_cashflows([late_sunday, monday], [], 0.0, weeks))

    assert rows[0].actual_inflow == pytest.approx(100.0)
    assert rows[1].actual_inflow == pytest.approx(40.0)


def test_transactions_outside_horizon_are_ignored(weeks, make_transaction):
    stale = make_transaction("2024-01-02", 999.0, "inflow")
    rows = compute_weekly_cashflows([stale], [], 0.0, weeks)
    assert rows[-1].running_balance == 0.0


@pytest.fixture()
def ar_estimates(weeks, today):
    invoices = [
        ReceivableInvoice("a", "INV-A", "Initech", 10_000.0, due_date=pd.Timestamp("2024-03-23"), terms="net_30"),
        ReceivableInvoice("b", "INV-B", "Globex", 4_000.0, due_date=pd.Timestamp("2024-03-03"), terms="net_30"),
    ]
    return build_ar_estimates(invoices, ARConfig(enabled=True), weeks, today)


def test_ar_counts_only_when_included(weeks, ar_estimates):
    without = compute_weekly_cashflows([], [], 0.0, weeks, ar_estimates=ar_estimates)
    with_ar = compute_weekly_cashflows([], [], 0.0, weeks, ar_estimates=ar_estimates, include_ar=True)

    assert without[-1].running_balance == 0.0
    assert _by_week(with_ar)[1].estimated_ar_inflow == pytest.approx(9_000.0)
    assert _by_week(with_ar)[5].estimated_ar_inflow == pytest.approx(3_000.0)
    assert with_ar[-1].running_balance == pytest.approx(12_000.0)


def test_ar_contribution_summary(weeks, ar_estimates):
    rows = compute_weekly_cashflows([], [], 0.0, weeks, ar_estimates=ar_estimates, include_ar=True)
    contribution = ar_contribution_summary(rows)

    assert contribution["total_ar_contribution"] == pytest.approx(12_000.0)
    assert contribution["confidence_distribution"]["high"] == {"amount": 9_000.0, "count": 1}
    assert contribution["confidence_distribution"]["low"]["count"] == 1
    assert len(contribution["weekly_breakdown"]) == len(weeks)


def test_scenarios_are_ordered(weeks, ar_estimates):
    scenarios = ar_scenario_analysis([], [], ar_estimates, 5_000.0, weeks)

    closing = {name: rows[-1].running_balance for name, rows in scenarios.items()}
    assert closing["optimistic"] == pytest.approx(19_000.0)
    assert closing["realistic"] == pytest.approx(17_000.0)
    assert closing["pessimistic"] == pytest.approx(5_000.0 + 12_000.0 * 0.7)
    assert closing["optimistic"] >= closing["realistic"] >= closing["pessimistic"]
    assert all(
        estimate.confidence == "low"
        for row in scenarios["pessimistic"]
        for estimate in row.ar_estimates
    )


def test_estimate_accuracy_for_past_weeks(weeks, make_transaction):
    actual = make_transaction("2024-03-05", 1_100.0, "inflow")
    occurrences = [
        EstimateOccurrence("guess", -1, "inflow", 1_000.0, "Client Payments", "Expected deposit"),
        EstimateOccurrence("later", 2, "inflow", 500.0, "Client Payments", "Future deposit"),
    ]
    rows = compute_weekly_cashflows([actual], occurrences, 0.0, weeks)

    assert estimate_accuracy(rows) == [{"week_number": -1, "inflow_variance": 10.0, "outflow_variance": 0.0}]


def test_frame_view_and_lowest_week(weeks, make_transaction):
    transactions = [
        make_transaction("2024-03-20", 3_000.0, "outflow", "GUSTO PAYROLL"),
        make_transaction("2024-04-10", 2_000.0, "inflow", "STRIPE PAYOUT"),
    ]
    rows = compute_weekly_cashflows(transactions, [], 2_500.0, weeks)
    frame = cashflows_to_frame(rows)

    assert list(frame.columns) == CASHFLOW_COLUMNS
    assert len(frame) == len(weeks)
    lowest = minimum_balance_week(rows)
    assert lowest is not None
    assert lowest.week_number == 1
    assert lowest.running_balance == pytest.approx(-500.0)
    assert minimum_balance_week([]) is None


def test_malformed_amount_fails_loudly(weeks, make_transaction):
    broken = replace(make_transaction("2024-03-12", 10.0, "inflow"), amount="lots")
    with pytest.raises(ValueError):
        compute_weekly_cashflows([broken], [], 0.0, weeks)


def test_offset_aware_transactions_aggregate(weeks, make_transaction):
    utc_payout = make_transaction("2024-03-12T10:00:00Z", 250.0, "inflow", "STRIPE PAYOUT")
    shifted = replace(utc_payout, date=pd.Timestamp("2024-03-19T09:00:00+02:00"), hash="shifted")

    rows = _by_week(compute_weekly_cashflows([utc_payout, shifted], [], 0.0, weeks))

    assert rows[0].actual_inflow == pytest.approx(250.0)
    assert rows[1].actual_inflow == pytest.approx(250.0)
    assert rows[12].running_balance == pytest.approx(500.0)
