"""Receivables collection estimates derived from outstanding invoices."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Sequence, TypedDict

import pandas as pd

from analytics.weeks import DateLike, WeekCalendar, as_timestamp
from core.models import AREstimate, Confidence, ReceivableInvoice, ReceivableStatus, WeeklyCashflow

__all__ = [
    "PAYMENT_TERM_OFFSETS",
    "DEFAULT_TERM_OFFSET_DAYS",
    "CollectionAssumptions",
    "ARConfig",
    "ARSummary",
    "ARContribution",
    "days_overdue",
    "classify_status",
    "estimate_collection_date",
    "apply_collection_assumptions",
    "build_ar_estimates",
    "summarize_receivables",
    "filter_ar_estimates",
    "ar_contribution_summary",
    "reschedule_ar_estimate",
]

logger = logging.getLogger(__name__)

# Days from invoice date to expected cash, including a short settlement lag.
PAYMENT_TERM_OFFSETS: dict[str, int] = {
    "net_15": 18,
    "net_30": 35,
    "due_on_receipt": 7,
}
DEFAULT_TERM_OFFSET_DAYS = 30

OVERDUE_DAYS_LIMIT = 90
COLLECTIONS_RATE = 0.5
COLLECTIONS_EXTRA_DELAY_DAYS = 30


@dataclass(frozen=True)
class CollectionAssumptions:
    """Collection-rate percentages (0-100) and the average delay for late invoices."""

    on_time_rate: float = 90.0
    overdue_collection_rate: float = 75.0
    average_delay_days: int = 14

    def __post_init__(self) -> None:
        for name in ("on_time_rate", "overdue_collection_rate"):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                raise ValueError(f"{name} must be a percentage between 0 and 100, got {value!r}")
        if self.overdue_collection_rate > self.on_time_rate:
            raise ValueError("overdue_collection_rate cannot exceed on_time_rate")
        if self.average_delay_days < 0:
            raise ValueError("average_delay_days must be non-negative")


@dataclass(frozen=True)
class ARConfig:
    enabled: bool = False
    assumptions: CollectionAssumptions = field(default_factory=CollectionAssumptions)


class AgingBuckets(TypedDict):
    current: float
    days_1_30: float
    days_31_60: float
    days_61_90: float
    days_over_90: float


class ExpectedCollections(TypedDict):
    this_week: float
    next_4_weeks: float
    next_13_weeks: float


class ARSummary(TypedDict):
    total_outstanding: float
    total_current: float
    total_overdue: float
    aging_buckets: AgingBuckets
    estimated_collections: ExpectedCollections


class ConfidenceTotals(TypedDict):
    amount: float
    count: int


class WeeklyARContribution(TypedDict):
    week_number: int
    ar_amount: float
    ar_count: int
    confidence: dict[str, float]


class ARContribution(TypedDict):
    total_ar_contribution: float
    weekly_breakdown: list[WeeklyARContribution]
    confidence_distribution: dict[str, ConfidenceTotals]


def days_overdue(due_date: Optional[pd.Timestamp], now: DateLike) -> int:
    """Return whole days past ``due_date`` (zero when not yet due or undated)."""

    if due_date is None:
        return 0
    delta = as_timestamp(now).normalize() - as_timestamp(due_date).normalize()
    return max(int(delta.days), 0)


def classify_status(overdue_days: int) -> ReceivableStatus:
    if overdue_days <= 0:
        return "current"
    if overdue_days <= OVERDUE_DAYS_LIMIT:
        return "overdue"
    return "collections"


def estimate_collection_date(
    invoice: ReceivableInvoice,
    now: DateLike,
) -> tuple[pd.Timestamp, Confidence]:
    """Return the unadjusted collection date and its confidence tier.

    Past-due invoices are expected within ``max(7, 30 - days_overdue)`` days
    of ``now`` at low confidence. Invoices not yet due are expected on their
    due date. Undated invoices fall back to the payment-terms offset from the
    invoice date.
    """

    today = as_timestamp(now).normalize()
    terms = (invoice.terms or "").strip().lower()
    known_terms = terms in PAYMENT_TERM_OFFSETS

    late_by = days_overdue(invoice.due_date, today)
    if late_by > 0:
        return today + pd.Timedelta(days=max(7, 30 - late_by)), "low"

    if invoice.due_date is not None:
        return as_timestamp(invoice.due_date).normalize(), "high" if known_terms else "medium"

    issued = as_timestamp(invoice.invoice_date).normalize() if invoice.invoice_date is not None else today
    offset = PAYMENT_TERM_OFFSETS.get(terms, DEFAULT_TERM_OFFSET_DAYS)
    return issued + pd.Timedelta(days=offset), "medium" if known_terms else "low"


def apply_collection_assumptions(
    amount: float,
    collection_date: DateLike,
    status: ReceivableStatus,
    assumptions: CollectionAssumptions,
) -> tuple[float, pd.Timestamp]:
    """Shrink ``amount`` and delay ``collection_date`` according to ``status``.

    Collections-stage invoices receive the overdue adjustment first and are
    then halved and pushed back a further 30 days.
    """

    adjusted = float(amount)
    when = as_timestamp(collection_date)

    if status == "current":
        adjusted *= assumptions.on_time_rate / 100.0
    else:
        adjusted *= assumptions.overdue_collection_rate / 100.0
        when += pd.Timedelta(days=assumptions.average_delay_days)
        if status == "collections":
            adjusted *= COLLECTIONS_RATE
            when += pd.Timedelta(days=COLLECTIONS_EXTRA_DELAY_DAYS)

    return round(adjusted, 2), when


def build_ar_estimates(
    invoices: Iterable[ReceivableInvoice],
    config: ARConfig,
    weeks: WeekCalendar,
    now: DateLike | None = None,
) -> list[AREstimate]:
    """Project outstanding invoices into week-bucketed collection estimates.

    Returns an empty list when ``config`` is disabled. Collections resolving
    past the horizon land in the last week.
    """

    if not config.enabled:
        return []

    today = pd.Timestamp.now().normalize() if now is None else as_timestamp(now).normalize()
    estimates: list[AREstimate] = []

    for invoice in invoices:
        raw_date, confidence = estimate_collection_date(invoice, today)
        late_by = days_overdue(invoice.due_date, today)
        status = classify_status(late_by)
        amount, collection_date = apply_collection_assumptions(
            invoice.amount_due,
            raw_date,
            status,
            config.assumptions,
        )
        estimates.append(
            AREstimate(
                id=f"ar_{invoice.invoice_id}",
                invoice_id=str(invoice.invoice_id),
                invoice_number=invoice.invoice_number,
                client_name=invoice.client_name,
                original_amount=float(invoice.amount_due),
                amount=amount,
                due_date=invoice.due_date,
                estimated_collection_date=collection_date,
                confidence=confidence,
                status=status,
                payment_terms=invoice.terms or "unknown",
                days_overdue=late_by,
                week_number=weeks.week_index_for_date(collection_date),
            )
        )

    logger.info("Derived %d AR estimate(s) from outstanding invoices", len(estimates))
    return estimates


def summarize_receivables(estimates: Sequence[AREstimate]) -> ARSummary:
    """Return outstanding totals, aging buckets and expected collections."""

    buckets: AgingBuckets = {
        "current": 0.0,
        "days_1_30": 0.0,
        "days_31_60": 0.0,
        "days_61_90": 0.0,
        "days_over_90": 0.0,
    }
    for estimate in estimates:
        buckets[_aging_bucket(estimate.days_overdue)] += estimate.original_amount

    total_outstanding = float(sum(estimate.original_amount for estimate in estimates))
    total_current = buckets["current"]

    return {
        "total_outstanding": round(total_outstanding, 2),
        "total_current": round(total_current, 2),
        "total_overdue": round(total_outstanding - total_current, 2),
        "aging_buckets": {key: round(value, 2) for key, value in buckets.items()},  # type: ignore[typeddict-item]
        "estimated_collections": {
            "this_week": _expected_between(estimates, 0, 0),
            "next_4_weeks": _expected_between(estimates, 0, 3),
            "next_13_weeks": _expected_between(estimates, None, None),
        },
    }


def filter_ar_estimates(
    estimates: Iterable[AREstimate],
    *,
    min_amount: float | None = None,
    max_amount: float | None = None,
    confidence: Sequence[Confidence] | None = None,
    status: Sequence[ReceivableStatus] | None = None,
    clients: Sequence[str] | None = None,
    date_range: tuple[DateLike, DateLike] | None = None,
) -> list[AREstimate]:
    selected: list[AREstimate] = []
    for estimate in estimates:
        if min_amount is not None and estimate.amount < min_amount:
            continue
        if max_amount is not None and estimate.amount > max_amount:
            continue
        if confidence is not None and estimate.confidence not in confidence:
            continue
        if status is not None and estimate.status not in status:
            continue
        if clients is not None and estimate.client_name not in clients:
            continue
        if date_range is not None:
            start, end = (as_timestamp(value) for value in date_range)
            if not start <= estimate.estimated_collection_date <= end:
                continue
        selected.append(estimate)
    return selected


def ar_contribution_summary(cashflows: Sequence[WeeklyCashflow]) -> ARContribution:
    """Return the AR share of a forecast, per week and per confidence tier."""

    distribution: dict[str, ConfidenceTotals] = {
        tier: {"amount": 0.0, "count": 0} for tier in ("high", "medium", "low")
    }
    weekly: list[WeeklyARContribution] = []

    for row in cashflows:
        per_tier = {"high": 0.0, "medium": 0.0, "low": 0.0}
        for estimate in row.ar_estimates:
            per_tier[estimate.confidence] += estimate.amount
            distribution[estimate.confidence]["amount"] += estimate.amount
            distribution[estimate.confidence]["count"] += 1
        weekly.append(
            {
                "week_number": row.week_number,
                "ar_amount": row.estimated_ar_inflow,
                "ar_count": len(row.ar_estimates),
                "confidence": per_tier,
            }
        )

    return {
        "total_ar_contribution": float(sum(row.estimated_ar_inflow for row in cashflows)),
        "weekly_breakdown": weekly,
        "confidence_distribution": distribution,
    }


def reschedule_ar_estimate(
    estimate: AREstimate,
    weeks: WeekCalendar,
    *,
    amount: float | None = None,
    delay_days: int = 0,
    confidence: Confidence | None = None,
) -> AREstimate:
    """Return a copy moved by ``delay_days`` with its week index recomputed."""

    when = estimate.estimated_collection_date + pd.Timedelta(days=delay_days)
    return replace(
        estimate,
        amount=estimate.amount if amount is None else round(float(amount), 2),
        estimated_collection_date=when,
        week_number=weeks.week_index_for_date(when),
        confidence=confidence or estimate.confidence,
    )


def _aging_bucket(overdue_days: int) -> str:
    if overdue_days <= 0:
        return "current"
    if overdue_days <= 30:
        return "days_1_30"
    if overdue_days <= 60:
        return "days_31_60"
    if overdue_days <= OVERDUE_DAYS_LIMIT:
        return "days_61_90"
    return "days_over_90"


def _expected_between(estimates: Sequence[AREstimate], first: int | None, last: int | None) -> float:
    total = 0.0
    for estimate in estimates:
        if first is not None and estimate.week_number < first:
            continue
        if last is not None and estimate.week_number > last:
            continue
        total += estimate.amount
    return round(total, 2)
