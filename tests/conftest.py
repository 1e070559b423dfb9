"""Shared fixtures for the forecasting test-suite."""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest
import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from analytics.weeks import build_week_calendar
from config.settings import get_settings
from core.models import Transaction
from core.transactions import transaction_hash

TODAY = pd.Timestamp("2024-03-13")  # a Wednesday; week 0 starts Monday 2024-03-11


@pytest.fixture(autouse=True)
def clear_streamlit_secrets(monkeypatch):
    """Provide an empty secrets mapping so tests don't rely on Streamlit runtime."""

    monkeypatch.setattr(st, "secrets", {}, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def today() -> pd.Timestamp:
    return TODAY


@pytest.fixture()
def weeks():
    return build_week_calendar(TODAY)


@pytest.fixture()
def make_transaction():
    def factory(
        when: str,
        amount: float,
        kind: str = "inflow",
        description: str = "ACME CORP PMT",
        category: str = "",
    ) -> Transaction:
        stamp = pd.Timestamp(when)
        digest = transaction_hash(stamp, amount, description)
        return Transaction(
            id=f"txn_{digest}",
            hash=digest,
            date=stamp,
            amount=amount,
            type=kind,  # type: ignore[arg-type]
            description=description,
            category=category,
        )

    return factory
