"""Core domain package for the cash-flow forecaster."""

from .models import (
    AREstimate,
    Estimate,
    EstimateOccurrence,
    RawTransaction,
    ReceivableInvoice,
    Transaction,
    WeeklyCashflow,
    WeekWindow,
)

__all__ = [
    "AREstimate",
    "Estimate",
    "EstimateOccurrence",
    "RawTransaction",
    "ReceivableInvoice",
    "Transaction",
    "WeeklyCashflow",
    "WeekWindow",
]
