"""Rule-driven transaction categorisation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Iterable, Optional, Sequence

import pandas as pd

from core.models import Direction, Transaction

__all__ = [
    "CategoryRule",
    "DEFAULT_CATEGORY_RULES",
    "FALLBACK_CATEGORIES",
    "normalize_description",
    "categorize_transaction",
    "categorize_transactions",
    "category_rules_table",
    "suggest_categories",
    "summarize_categories",
]

_NON_ALPHANUMERIC = re.compile(r"[^0-9a-z]+")


@dataclass(frozen=True)
class CategoryRule:
    """One row of the categorisation table.

    ``keywords`` are matched case-insensitively and must begin a word of the
    description, so ``ADP`` matches "ADP PAYROLL" but not "ROADPAVING".
    ``direction`` restricts the rule to inflows or outflows; ``None`` matches
    both. ``subcategories`` maps a counterparty keyword to the label stored in
    :attr:`Transaction.subcategory`.
    """

    category: str
    keywords: tuple[str, ...]
    direction: Optional[Direction] = None
    subcategories: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def matches(self, description: str, direction: Direction) -> bool:
        if self.direction is not None and self.direction != direction:
            return False
        text = description.upper()
        return any(_keyword_pattern(keyword).search(text) for keyword in self.keywords)

    def subcategory_for(self, description: str) -> Optional[str]:
        text = description.upper()
        for keyword, label in self.subcategories:
            if _keyword_pattern(keyword).search(text):
                return label
        return None


FALLBACK_CATEGORIES: dict[str, str] = {
    "inflow": "Other Income",
    "outflow": "Other Operating Expenses",
}

# Evaluated top to bottom; the first match wins.
DEFAULT_CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule("Payment Processing Revenue", ("STRIPE", "SQUARE", "PAYPAL"), "inflow"),
    CategoryRule(
        "Client Payments",
        ("CLIENT PMT", "INVOICE", "WIRE FROM", "ACH CREDIT"),
        "inflow",
    ),
    CategoryRule(
        "Expense Reimbursement",
        ("EXPENSES REPAYMENT", "REPAYMENT", "REIMBURSEMENT"),
        "inflow",
    ),
    CategoryRule("Investment/Banking", ("INTEREST", "DIVIDEND", "BANQUE", "CITIBANK"), "inflow"),
    CategoryRule("Reimbursement", ("RMPR", "EXPENSE REIMB"), "outflow"),
    CategoryRule("Credit Card Payment", ("CARD STATEMENT", "RAMP STATEMENT", "AMEX EPAYMENT"), "outflow"),
    CategoryRule(
        "Payroll",
        ("PAYROLL", "GUSTO", "RIPPLING", "DEEL", "ADP", "PEOPLE CENTER"),
        "outflow",
        (("RIPPLING", "Rippling"), ("GUSTO", "Gusto"), ("DEEL", "Deel"), ("ADP", "ADP")),
    ),
    CategoryRule("Vendor Bill Payment", ("BILL PAY", "RAMP TRN", "VENDOR PMT"), "outflow"),
    CategoryRule("Tax Payments", ("IRS", "TAX", "EFTPS", "FRANCHISE TAX"), "outflow"),
    CategoryRule("Rent", ("RENT PAYMENT", "LEASE PMT"), "outflow"),
)


@lru_cache(maxsize=2048)
def normalize_description(raw: str) -> str:
    """Return a lower-case description with punctuation noise collapsed to spaces."""

    if not raw:
        return ""
    return _NON_ALPHANUMERIC.sub(" ", raw.lower()).strip()


@lru_cache(maxsize=256)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword.upper())}")


def categorize_transaction(
    transaction: Transaction,
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
) -> Transaction:
    """Return a copy of ``transaction`` labelled by the first matching rule."""

    for rule in rules:
        if rule.matches(transaction.description, transaction.type):
            return replace(
                transaction,
                category=rule.category,
                subcategory=rule.subcategory_for(transaction.description),
            )
    return replace(transaction, category=FALLBACK_CATEGORIES[transaction.type], subcategory=None)


def categorize_transactions(
    transactions: Iterable[Transaction],
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
) -> list[Transaction]:
    return [categorize_transaction(transaction, rules) for transaction in transactions]


def category_rules_table(rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES) -> pd.DataFrame:
    """Return the rule table as a DataFrame, one row per rule in priority order."""

    return pd.DataFrame(
        [
            {
                "priority": position,
                "category": rule.category,
                "direction": rule.direction or "any",
                "keywords": ", ".join(rule.keywords),
                "subcategories": ", ".join(label for _, label in rule.subcategories),
            }
            for position, rule in enumerate(rules, start=1)
        ],
        columns=["priority", "category", "direction", "keywords", "subcategories"],
    )


def suggest_categories(
    description: str,
    direction: Direction,
    rules: Sequence[CategoryRule] = DEFAULT_CATEGORY_RULES,
) -> list[str]:
    """Return every category whose rule would match, in priority order."""

    suggestions: list[str] = []
    for rule in rules:
        if rule.matches(description, direction) and rule.category not in suggestions:
            suggestions.append(rule.category)
    return suggestions


def summarize_categories(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Return count and total per direction, category and subcategory."""

    records = [
        {
            "type": transaction.type,
            "category": transaction.category,
            "subcategory": transaction.subcategory or "Other",
            "amount": float(transaction.amount),
        }
        for transaction in transactions
    ]
    if not records:
        return pd.DataFrame(columns=["type", "category", "subcategory", "count", "total"])

    frame = pd.DataFrame(records)
    summary = (
        frame.groupby(["type", "category", "subcategory"])["amount"]
        .agg(count="count", total="sum")
        .reset_index()
        .sort_values(["type", "total"], ascending=[True, False])
        .reset_index(drop=True)
    )
    return summary
