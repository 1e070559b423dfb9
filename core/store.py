"""Persistence contract used by the forecast service, plus an in-memory store."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Mapping, Protocol

from core.models import Estimate, Transaction

__all__ = ["ForecastStore", "InMemoryForecastStore", "MUTABLE_ESTIMATE_FIELDS"]

MUTABLE_ESTIMATE_FIELDS = frozenset(
    {
        "type",
        "amount",
        "category",
        "description",
        "notes",
        "week_number",
        "is_recurring",
        "recurring_type",
        "day_of_month",
    }
)


class ForecastStore(Protocol):
    def load_transactions(self) -> list[Transaction]: ...

    def upsert_transactions(self, batch: Iterable[Transaction]) -> int: ...

    def recategorize_transaction(
        self, transaction_hash: str, category: str, subcategory: str | None = None
    ) -> Transaction: ...

    def delete_transaction(self, transaction_hash: str) -> bool: ...

    def load_estimates(self) -> list[Estimate]: ...

    def upsert_estimate(self, estimate_id: str, fields: Mapping[str, Any]) -> Estimate: ...

    def delete_estimate(self, estimate_id: str) -> bool: ...


class InMemoryForecastStore:
    """Dictionary-backed store keyed by transaction hash and estimate id."""

    def __init__(
        self,
        transactions: Iterable[Transaction] = (),
        estimates: Iterable[Estimate] = (),
    ) -> None:
        self._transactions: dict[str, Transaction] = {}
        self._estimates: dict[str, Estimate] = {estimate.id: estimate for estimate in estimates}
        self.upsert_transactions(transactions)

    def load_transactions(self) -> list[Transaction]:
        return sorted(self._transactions.values(), key=lambda transaction: transaction.date)

    def upsert_transactions(self, batch: Iterable[Transaction]) -> int:
        """Write ``batch`` keyed by hash; an existing hash is left untouched."""

        written = 0
        for transaction in batch:
            if transaction.hash in self._transactions:
                continue
            self._transactions[transaction.hash] = transaction
            written += 1
        return written

    def recategorize_transaction(
        self, transaction_hash: str, category: str, subcategory: str | None = None
    ) -> Transaction:
        """Replace the labels of a stored transaction; raises ``KeyError`` for an unknown hash."""

        current = self._transactions[transaction_hash]
        updated = replace(current, category=category, subcategory=subcategory)
        self._transactions[transaction_hash] = updated
        return updated

    def delete_transaction(self, transaction_hash: str) -> bool:
        return self._transactions.pop(transaction_hash, None) is not None

    def load_estimates(self) -> list[Estimate]:
        return list(self._estimates.values())

    def upsert_estimate(self, estimate_id: str, fields: Mapping[str, Any]) -> Estimate:
        unknown = set(fields) - MUTABLE_ESTIMATE_FIELDS
        if unknown:
            raise KeyError(f"Estimate fields cannot be written: {sorted(unknown)}")

        existing = self._estimates.get(estimate_id)
        if existing is None:
            estimate = Estimate(id=estimate_id, **fields)
        else:
            estimate = replace(existing, **fields)
        self._estimates[estimate_id] = estimate
        return estimate

    def delete_estimate(self, estimate_id: str) -> bool:
        return self._estimates.pop(estimate_id, None) is not None
