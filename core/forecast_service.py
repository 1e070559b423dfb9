"""End-to-end orchestration of imports, estimates and forecast recomputes."""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, TypedDict

import pandas as pd

from analytics.categorize import DEFAULT_CATEGORY_RULES, CategoryRule
from analytics.duplicates import SimilarityGroup, find_similar_transaction_groups, partition_new_transactions
from analytics.forecasting import cashflows_to_frame, compute_weekly_cashflows, minimum_balance_week
from analytics.receivables import ARContribution, ar_contribution_summary, build_ar_estimates
from analytics.recurring import expand_estimates, validate_estimate
from analytics.weeks import DateLike, WeekCalendar, build_week_calendar
from config.settings import Settings
from core.models import AREstimate, Estimate, EstimateOccurrence, RawTransaction, Transaction, WeeklyCashflow
from core.store import MUTABLE_ESTIMATE_FIELDS, ForecastStore
from core.transactions import build_transactions
from integrations.invoicing import InvoicingAPIError, InvoicingClient

__all__ = [
    "ImportResult",
    "ForecastResult",
    "calendar_from_settings",
    "import_transactions",
    "recategorize_transaction",
    "create_estimate",
    "update_estimate",
    "fetch_ar_estimates",
    "build_forecast",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    new: list[Transaction]
    duplicates: list[Transaction]
    similar_groups: list[SimilarityGroup]
    written: int


class ForecastResult(TypedDict):
    calendar: WeekCalendar
    cashflows: list[WeeklyCashflow]
    cashflow_df: pd.DataFrame
    occurrences: list[EstimateOccurrence]
    ar_estimates: list[AREstimate]
    ar_contribution: ARContribution
    lowest_balance_week: Optional[WeeklyCashflow]


def calendar_from_settings(settings: Settings, today: DateLike | None = None) -> WeekCalendar:
    return build_week_calendar(
        today,
        week_start_day=settings.week_start_day,
        past_weeks=settings.past_weeks,
        future_weeks=settings.future_weeks,
    )


def import_transactions(
    raw_records: Iterable[RawTransaction | Mapping[str, object]],
    store: ForecastStore,
    settings: Settings,
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
) -> ImportResult:
    """Categorise a parsed batch, drop exact duplicates and persist the rest.

    Exact duplicates are checked against a snapshot of stored hashes before
    anything is written. Fuzzy matches across stored and new transactions are
    reported for review and never removed.
    """

    batch = build_transactions(raw_records, rules)
    existing = store.load_transactions()
    partition = partition_new_transactions(batch, (transaction.hash for transaction in existing))

    written = store.upsert_transactions(partition.new) if partition.new else 0
    similar_groups = find_similar_transaction_groups(
        existing + partition.new,
        settings.similarity_options,
    )

    logger.info(
        "Imported %d transaction(s): %d written, %d duplicate, %d similarity group(s)",
        len(batch),
        written,
        len(partition.duplicates),
        len(similar_groups),
    )
    return ImportResult(
        new=partition.new,
        duplicates=partition.duplicates,
        similar_groups=similar_groups,
        written=written,
    )


def recategorize_transaction(
    store: ForecastStore,
    transaction_hash: str,
    category: str,
    subcategory: str | None = None,
) -> Transaction:
    """Apply a manual category override to a stored transaction.

    Only the labels change; the hash, amount and date are kept so a later
    re-import of the same row is still recognised as a duplicate.
    """

    category = category.strip()
    if not category:
        raise ValueError("Category must not be empty")

    updated = store.recategorize_transaction(transaction_hash, category, subcategory or None)
    logger.info("Recategorised transaction %s as %s", transaction_hash, category)
    return updated


def create_estimate(store: ForecastStore, **fields: Any) -> Estimate:
    """Validate and persist a new estimate; the id is generated here."""

    estimate_id = str(fields.pop("id", None) or uuid.uuid4())
    validate_estimate(Estimate(id=estimate_id, **fields))
    return store.upsert_estimate(estimate_id, fields)


def update_estimate(store: ForecastStore, estimate_id: str, **fields: Any) -> Estimate:
    """Apply an edit to an existing estimate after validating the result."""

    if "id" in fields:
        raise ValueError("Estimate identifiers cannot be changed")

    current = {estimate.id: estimate for estimate in store.load_estimates()}.get(estimate_id)
    if current is None:
        raise KeyError(f"Unknown estimate: {estimate_id}")

    merged = {key: value for key, value in asdict(current).items() if key in MUTABLE_ESTIMATE_FIELDS}
    merged.update(fields)
    validate_estimate(Estimate(id=estimate_id, **merged))
    return store.upsert_estimate(estimate_id, fields)


def fetch_ar_estimates(
    client: InvoicingClient,
    settings: Settings,
    weeks: WeekCalendar,
    now: DateLike | None = None,
) -> list[AREstimate]:
    """Fetch invoices and derive AR estimates, or ``[]`` when unavailable."""

    config = settings.ar_config
    if not config.enabled:
        return []

    try:
        invoices = client.list_outstanding_invoices()
    except InvoicingAPIError as exc:
        logger.warning("Receivables unavailable, forecasting without AR: %s", exc)
        return []

    return build_ar_estimates(invoices, config, weeks, now)


def build_forecast(
    transactions: Sequence[Transaction],
    estimates: Sequence[Estimate],
    starting_balance: float,
    settings: Settings,
    *,
    today: DateLike | None = None,
    ar_estimates: Optional[Sequence[AREstimate]] = None,
) -> ForecastResult:
    """Recompute the full forecast from current inputs.

    Nothing is cached between calls; the latest call's result replaces any
    earlier one.
    """

    weeks = calendar_from_settings(settings, today)
    occurrences = expand_estimates(estimates, weeks)
    include_ar = settings.ar_enabled and bool(ar_estimates)
    ar_rows = list(ar_estimates or []) if include_ar else []

    cashflows = compute_weekly_cashflows(
        transactions,
        occurrences,
        starting_balance,
        weeks,
        ar_estimates=ar_rows,
        include_ar=include_ar,
    )
    logger.info(
        "Forecast recomputed for %s to %s, closing balance %.2f",
        weeks.start.date(),
        weeks.end.date(),
        cashflows[-1].running_balance,
    )

    return {
        "calendar": weeks,
        "cashflows": cashflows,
        "cashflow_df": cashflows_to_frame(cashflows),
        "occurrences": occurrences,
        "ar_estimates": ar_rows,
        "ar_contribution": ar_contribution_summary(cashflows),
        "lowest_balance_week": minimum_balance_week(cashflows),
    }
