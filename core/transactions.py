"""Conversion of parsed bank rows into hashed, categorised transactions."""

from __future__ import annotations

import hashlib
from typing import Iterable, Mapping, Sequence

import pandas as pd

from analytics.categorize import DEFAULT_CATEGORY_RULES, CategoryRule, categorize_transaction
from analytics.weeks import as_timestamp
from core.models import Direction, RawTransaction, Transaction

__all__ = [
    "HASH_DESCRIPTION_CHARS",
    "transaction_hash",
    "resolve_direction",
    "build_transaction",
    "build_transactions",
]

HASH_DESCRIPTION_CHARS = 64

_INFLOW_FLAGS = frozenset({"CREDIT", "DSLIP"})
_OUTFLOW_FLAGS = frozenset({"DEBIT"})


def transaction_hash(posted: object, amount: float, description: str) -> str:
    """Return the content digest used as the natural key of a transaction.

    The digest covers the posting day, the amount rounded to cents and the
    first :data:`HASH_DESCRIPTION_CHARS` characters of the trimmed, upper-cased
    description, so re-importing the same export produces the same keys.
    """

    day = as_timestamp(posted).strftime("%Y-%m-%d")
    cents = f"{round(float(amount), 2):.2f}"
    text = description.strip().upper()[:HASH_DESCRIPTION_CHARS]
    digest = hashlib.sha256(f"{day}|{cents}|{text}".encode("utf-8"))
    return digest.hexdigest()[:20]


def resolve_direction(details: str | None, signed_amount: float) -> Direction:
    flag = (details or "").strip().upper()
    if flag in _INFLOW_FLAGS:
        return "inflow"
    if flag in _OUTFLOW_FLAGS:
        return "outflow"
    return "inflow" if signed_amount >= 0 else "outflow"


def build_transaction(
    raw: RawTransaction | Mapping[str, object],
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
) -> Transaction:
    """Build a categorised :class:`Transaction` from one parsed bank row.

    Conversion errors are not caught: an unparseable date or amount raises.
    """

    posted = as_timestamp(raw["Posting Date"])  # type: ignore[arg-type]
    signed_amount = float(raw["Amount"])  # type: ignore[arg-type]
    description = str(raw.get("Description") or "").strip()
    digest = transaction_hash(posted, signed_amount, description)

    check_number = raw.get("Check or Slip #")
    if check_number is not None and pd.isna(check_number):
        check_number = None
    balance = raw.get("Balance")

    transaction = Transaction(
        id=f"txn_{digest}",
        hash=digest,
        date=posted,
        amount=abs(signed_amount),
        type=resolve_direction(str(raw.get("Details") or ""), signed_amount),
        description=description,
        balance=0.0 if balance is None or pd.isna(balance) else float(balance),  # type: ignore[arg-type]
        check_number=str(check_number) if check_number not in (None, "") else None,
    )
    return categorize_transaction(transaction, rules)


def build_transactions(
    raw_records: Iterable[RawTransaction | Mapping[str, object]],
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
) -> list[Transaction]:
    return [build_transaction(raw, rules) for raw in raw_records]
