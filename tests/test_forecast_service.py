"""Integration tests for the forecast service against the in-memory store."""

from __future__ import annotations

import pandas as pd
import pytest

from analytics.receivables import ARConfig, build_ar_estimates
from analytics.recurring import EstimateValidationError
from config.settings import Settings
from core.forecast_service import (
    build_forecast,
    calendar_from_settings,
    create_estimate,
    fetch_ar_estimates,
    import_transactions,
    recategorize_transaction,
    update_estimate,
)
from core.models import ReceivableInvoice
from core.store import InMemoryForecastStore
from integrations.invoicing import InvoicingAPIError, InvoicingClient


def _row(day: str, amount: float, description: str, details: str | None = None) -> dict:
    return {
        "Details": details or ("CREDIT" if amount > 0 else "DEBIT"),
        "Posting Date": day,
        "Description": description,
        "Amount": amount,
        "Type": "ACH",
        "Balance": 0.0,
        "Check or Slip #": None,
    }


@pytest.fixture()
def raw_batch() -> list[dict]:
    return [
        _row("03/12/2024", 500.0, "ACME CORP PMT"),
        _row("03/12/2024", 500.0, "ACME CORP PAYMENT"),
        _row("03/13/2024", -1200.0, "GUSTO PAYROLL"),
    ]


def test_import_is_idempotent_and_reports_similar_rows(raw_batch):
    store = InMemoryForecastStore()
    settings = Settings()

    first = import_transactions(raw_batch, store, settings)
    second = import_transactions(raw_batch, store, settings)

    assert first.written == 3
    assert len(first.similar_groups) == 1
    assert second.new == []
    assert second.written == 0
    assert len(second.duplicates) == len(raw_batch)
    assert len(store.load_transactions()) == 3


def test_estimate_lifecycle():
    store = InMemoryForecastStore()

    created = create_estimate(
        store,
        type="outflow",
        amount=1500.0,
        category="Rent",
        description="Office lease",
        week_number=0,
        is_recurring=True,
        recurring_type="monthly",
        day_of_month=1,
    )
    assert created.id
    assert store.load_estimates() == [created]

    updated = update_estimate(store, created.id, amount=1600.0)
    assert updated.amount == pytest.approx(1600.0)
    assert updated.day_of_month == 1

    with pytest.raises(EstimateValidationError):
        update_estimate(store, created.id, day_of_month=32)
    with pytest.raises(KeyError):
        update_estimate(store, "missing", amount=1.0)
    with pytest.raises(ValueError):
        update_estimate(store, created.id, id="other")


def test_invalid_estimate_is_not_persisted():
    store = InMemoryForecastStore()
    with pytest.raises(EstimateValidationError):
        create_estimate(
            store,
            type="inflow",
            amount=100.0,
            category="Client Payments",
            description="Retainer",
            week_number=1,
            is_recurring=True,
            recurring_type="fortnightly",
        )
    assert store.load_estimates() == []


class _FailingClient:
    def list_outstanding_invoices(self):
        raise InvoicingAPIError("service unavailable")


class _StaticClient:
    def __init__(self, invoices):
        self.invoices = invoices

    def list_outstanding_invoices(self):
        return self.invoices


def test_unavailable_receivables_degrade_to_empty(weeks, today):
    settings = Settings(ar_enabled=True)
    assert fetch_ar_estimates(_FailingClient(), settings, weeks, today) == []  # type: ignore[arg-type]


def test_disabled_receivables_skip_the_fetch(weeks, today):
    assert fetch_ar_estimates(_FailingClient(), Settings(), weeks, today) == []  # type: ignore[arg-type]


def test_build_forecast_end_to_end(raw_batch, today):
    store = InMemoryForecastStore()
    settings = Settings(ar_enabled=True)
    import_transactions(raw_batch, store, settings)
    create_estimate(
        store,
        type="outflow",
        amount=2000.0,
        category="Payroll",
        description="Weekly payroll",
        week_number=0,
        is_recurring=True,
        recurring_type="weekly",
    )
    invoice = ReceivableInvoice("1", "INV-1", "Initech", 10_000.0, due_date=pd.Timestamp("2024-03-23"), terms="net_30")
    calendar_weeks = calendar_from_settings(settings, today)
    ar = fetch_ar_estimates(_StaticClient([invoice]), settings, calendar_weeks, today)  # type: ignore[arg-type]

    result = build_forecast(
        store.load_transactions(),
        store.load_estimates(),
        50_000.0,
        settings,
        today=today,
        ar_estimates=ar,
    )

    rows = {row.week_number: row for row in result["cashflows"]}
    assert rows[0].actual_inflow == pytest.approx(1000.0)
    assert rows[0].actual_outflow == pytest.approx(1200.0)
    assert rows[0].estimated_outflow == pytest.approx(2000.0)
    assert rows[1].estimated_ar_inflow == pytest.approx(9000.0)
    assert result["cashflow_df"]["running_balance"].iloc[-1] == pytest.approx(result["cashflows"][-1].running_balance)
    assert result["ar_contribution"]["total_ar_contribution"] == pytest.approx(9000.0)
    assert result["lowest_balance_week"] is not None


def test_ar_ignored_when_disabled(today):
    settings = Settings()
    weeks = calendar_from_settings(settings, today)
    invoice = ReceivableInvoice("1", "INV-1", "Initech", 10_000.0, due_date=pd.Timestamp("2024-03-23"))
    ar = build_ar_estimates([invoice], ARConfig(enabled=True), weeks, today)

    result = build_forecast([], [], 100.0, settings, today=today, ar_estimates=ar)

    assert result["ar_estimates"] == []
    assert result["cashflows"][-1].running_balance == pytest.approx(100.0)


def test_manual_recategorisation_keeps_the_hash(raw_batch):
    store = InMemoryForecastStore()
    settings = Settings()
    import_transactions(raw_batch, store, settings)
    payroll = next(t for t in store.load_transactions() if t.description == "GUSTO PAYROLL")

    updated = recategorize_transaction(store, payroll.hash, "Contractors", "Gusto")

    assert updated.category == "Contractors"
    assert updated.hash == payroll.hash
    assert import_transactions(raw_batch, store, settings).written == 0
    assert {t.category for t in store.load_transactions() if t.hash == payroll.hash} == {"Contractors"}

    with pytest.raises(ValueError):
        recategorize_transaction(store, payroll.hash, "  ")
    with pytest.raises(KeyError):
        recategorize_transaction(store, "missing", "Rent")


class _InvoicePage:
    def __init__(self, results):
        self.results = results

    def raise_for_status(self):
        return None

    def json(self):
        return {"results": self.results, "next": None}


class _InvoiceSession:
    def __init__(self, results):
        self.results = results

    def get(self, url, headers=None, params=None, timeout=None):
        return _InvoicePage(self.results)


def _invoice_record(**fields) -> dict:
    record = {"id": 1, "client_name": "Initech", "amount_due": 1000.0, "due_date": "2024-03-23", "terms": "net_30", "status": "open"}
    record.update(fields)
    return record


def test_malformed_invoice_records_do_not_break_the_forecast(weeks, today):
    nameless = _invoice_record()
    del nameless["id"]
    records = [_invoice_record(id=7, due_date="not-a-date"), nameless, _invoice_record(id=9)]
    client = InvoicingClient("key", base_url="https://invoices.example.test", session=_InvoiceSession(records))  # type: ignore[arg-type]

    estimates = fetch_ar_estimates(client, Settings(ar_enabled=True), weeks, today)

    assert [estimate.invoice_id for estimate in estimates] == ["9"]
    assert estimates[0].week_number == 1
    assert estimates[0].amount == pytest.approx(900.0)

    only_bad = InvoicingClient("key", base_url="https://invoices.example.test", session=_InvoiceSession(records[:2]))  # type: ignore[arg-type]
    assert fetch_ar_estimates(only_bad, Settings(ar_enabled=True), weeks, today) == []
