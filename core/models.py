"""Shared data model definitions for the cash-flow forecasting engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, TypedDict

import pandas as pd

Direction = Literal["inflow", "outflow"]
RecurrenceKind = Literal["weekly", "bi-weekly", "monthly"]
WeekStatus = Literal["past", "current", "future"]
Confidence = Literal["high", "medium", "low"]
ReceivableStatus = Literal["current", "overdue", "collections"]

RawTransaction = TypedDict(
    "RawTransaction",
    {
        "Details": str,
        "Posting Date": str,
        "Description": str,
        "Amount": float,
        "Type": str,
        "Balance": float,
        "Check or Slip #": str,
    },
    total=False,
)


@dataclass(frozen=True)
class Transaction:
    """A single bank-ledger line with an unsigned amount and a direction."""

    id: str
    hash: str
    date: pd.Timestamp
    amount: float
    type: Direction
    description: str
    category: str = ""
    subcategory: Optional[str] = None
    balance: float = 0.0
    check_number: Optional[str] = None


@dataclass(frozen=True)
class Estimate:
    """A user-declared assumption; recurring estimates act as templates."""

    id: str
    type: Direction
    amount: float
    category: str
    description: str
    week_number: int
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_type: Optional[RecurrenceKind] = None
    day_of_month: Optional[int] = None


@dataclass(frozen=True)
class EstimateOccurrence:
    """A concrete week placement of an estimate."""

    estimate_id: str
    week_number: int
    type: Direction
    amount: float
    category: str
    description: str
    date: Optional[pd.Timestamp] = None


@dataclass(frozen=True)
class ReceivableInvoice:
    """Outstanding invoice as reported by the invoicing system."""

    invoice_id: str
    invoice_number: str
    client_name: str
    amount_due: float
    due_date: Optional[pd.Timestamp] = None
    invoice_date: Optional[pd.Timestamp] = None
    terms: Optional[str] = None
    status: str = "open"


@dataclass(frozen=True)
class AREstimate:
    """Collection estimate derived from a receivable invoice."""

    id: str
    invoice_id: str
    invoice_number: str
    client_name: str
    original_amount: float
    amount: float
    due_date: Optional[pd.Timestamp]
    estimated_collection_date: pd.Timestamp
    confidence: Confidence
    status: ReceivableStatus
    payment_terms: str
    days_overdue: int
    week_number: int


@dataclass(frozen=True)
class WeekWindow:
    number: int
    start: pd.Timestamp
    end: pd.Timestamp
    status: WeekStatus


@dataclass(frozen=True)
class WeeklyCashflow:
    """One forecast row; ``running_balance`` already includes ``net_cashflow``."""

    week_number: int
    week_start: pd.Timestamp
    week_end: pd.Timestamp
    week_status: WeekStatus
    actual_inflow: float
    actual_outflow: float
    estimated_inflow: float
    estimated_outflow: float
    estimated_ar_inflow: float
    total_inflow: float
    total_outflow: float
    net_cashflow: float
    running_balance: float
    transactions: list[Transaction] = field(default_factory=list)
    occurrences: list[EstimateOccurrence] = field(default_factory=list)
    ar_estimates: list[AREstimate] = field(default_factory=list)


class EstimateAccuracy(TypedDict):
    week_number: int
    inflow_variance: float
    outflow_variance: float


__all__ = [
    "Direction",
    "RecurrenceKind",
    "WeekStatus",
    "Confidence",
    "ReceivableStatus",
    "RawTransaction",
    "Transaction",
    "Estimate",
    "EstimateOccurrence",
    "ReceivableInvoice",
    "AREstimate",
    "WeekWindow",
    "WeeklyCashflow",
    "EstimateAccuracy",
]
