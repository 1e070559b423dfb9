"""Exact and fuzzy duplicate detection for imported transactions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from rapidfuzz import fuzz

from analytics.categorize import normalize_description
from core.models import Transaction

__all__ = [
    "SimilarityOptions",
    "DEFAULT_SIMILARITY_OPTIONS",
    "ImportPartition",
    "SimilarityGroup",
    "partition_new_transactions",
    "description_similarity",
    "are_transactions_similar",
    "find_similar_transaction_groups",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityOptions:
    """Thresholds for treating two transactions as probable duplicates."""

    max_date_difference_hours: float = 72.0
    description_similarity_threshold: float = 0.8
    amount_tolerance: float = 0.0


DEFAULT_SIMILARITY_OPTIONS = SimilarityOptions()


@dataclass(frozen=True)
class ImportPartition:
    new: list[Transaction]
    duplicates: list[Transaction]


@dataclass(frozen=True)
class SimilarityGroup:
    """Transactions an operator should review together, seed first."""

    members: list[Transaction]

    @property
    def seed(self) -> Transaction:
        return self.members[0]

    @property
    def deletion_candidates(self) -> list[str]:
        """Hashes that would be removed if the operator keeps the seed."""

        return [member.hash for member in self.members[1:]]

    def __len__(self) -> int:
        return len(self.members)


def partition_new_transactions(
    batch: Iterable[Transaction],
    known_hashes: Iterable[str],
) -> ImportPartition:
    """Split ``batch`` into transactions not yet stored and exact duplicates.

    Repeated hashes inside ``batch`` count as duplicates after their first
    occurrence, so the ``new`` list is always safe to write as-is.
    """

    seen = set(known_hashes)
    new: list[Transaction] = []
    duplicates: list[Transaction] = []

    for transaction in batch:
        if transaction.hash in seen:
            duplicates.append(transaction)
            continue
        seen.add(transaction.hash)
        new.append(transaction)

    logger.info("Import partition: %d new, %d duplicate", len(new), len(duplicates))
    return ImportPartition(new=new, duplicates=duplicates)


def description_similarity(first: str, second: str) -> float:
    """Return a 0-1 similarity score between two normalised descriptions."""

    left = normalize_description(first)
    right = normalize_description(second)
    if left == right:
        return 1.0
    return fuzz.ratio(left, right) / 100.0


def are_transactions_similar(
    first: Transaction,
    second: Transaction,
    options: SimilarityOptions = DEFAULT_SIMILARITY_OPTIONS,
) -> bool:
    hours_apart = abs((first.date - second.date).total_seconds()) / 3600.0
    if hours_apart > options.max_date_difference_hours:
        return False

    if abs(float(first.amount) - float(second.amount)) > options.amount_tolerance:
        return False

    score = description_similarity(first.description, second.description)
    if score < options.description_similarity_threshold:
        return False

    logger.debug(
        "Similar transactions %s / %s: %.0fh apart, description score %.2f",
        first.hash,
        second.hash,
        hours_apart,
        score,
    )
    return True


def find_similar_transaction_groups(
    transactions: Sequence[Transaction],
    options: SimilarityOptions = DEFAULT_SIMILARITY_OPTIONS,
) -> list[SimilarityGroup]:
    """Group probable duplicates with a single greedy pass in input order.

    Each unprocessed transaction seeds a group and collects every later,
    unprocessed transaction similar to it. Members are never reconsidered, so
    the groups form a partition; a transaction similar to several seeds joins
    the earliest one. Singletons are omitted.
    """

    groups: list[SimilarityGroup] = []
    processed: set[int] = set()

    for i, seed in enumerate(transactions):
        if i in processed:
            continue
        processed.add(i)
        members = [seed]

        for j in range(i + 1, len(transactions)):
            if j in processed:
                continue
            if are_transactions_similar(seed, transactions[j], options):
                members.append(transactions[j])
                processed.add(j)

        if len(members) > 1:
            groups.append(SimilarityGroup(members=members))

    return groups
