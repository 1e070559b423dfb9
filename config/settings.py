"""Centralised configuration handling for the cash-flow forecaster."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping

import streamlit as st
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from analytics.duplicates import SimilarityOptions
from analytics.receivables import ARConfig, CollectionAssumptions
from integrations.invoicing import DEFAULT_BASE_URL

DEFAULT_INVOICING_BASE_URL = DEFAULT_BASE_URL
SECRETS_SECTION = "cashflow"


def _streamlit_section(name: str) -> Mapping[str, Any] | None:
    """Return a mapping from Streamlit secrets for the given section."""

    try:
        if hasattr(st, "secrets") and name in st.secrets:
            section = st.secrets[name]
            if isinstance(section, Mapping):
                return section
            return dict(section)
    except Exception:  # pragma: no cover - accessing secrets may fail in tests
        return None
    return None


class Settings(BaseSettings):
    """Forecast settings sourced from env vars and Streamlit secrets."""

    week_start_day: int = Field(default=0, ge=0, le=6)
    past_weeks: int = Field(default=1, ge=0)
    future_weeks: int = Field(default=12, ge=0)

    max_date_difference_hours: float = Field(default=72.0, ge=0)
    description_similarity_threshold: float = Field(default=0.8, ge=0, le=1)
    amount_tolerance: float = Field(default=0.0, ge=0)

    ar_enabled: bool = False
    ar_on_time_rate: float = Field(default=90.0, ge=0, le=100)
    ar_overdue_collection_rate: float = Field(default=75.0, ge=0, le=100)
    ar_average_delay_days: int = Field(default=14, ge=0)
    ar_refresh_minutes: int = Field(default=60, ge=1)

    invoicing_api_key: str | None = None
    invoicing_base_url: str = DEFAULT_INVOICING_BASE_URL
    invoicing_max_pages: int = Field(default=10, ge=1)

    model_config = SettingsConfigDict(env_prefix="CASHFLOW_", extra="ignore")

    @model_validator(mode="after")
    def _check_collection_rates(self) -> "Settings":
        if self.ar_overdue_collection_rate > self.ar_on_time_rate:
            raise ValueError("ar_overdue_collection_rate cannot exceed ar_on_time_rate")
        return self

    @property
    def similarity_options(self) -> SimilarityOptions:
        return SimilarityOptions(
            max_date_difference_hours=self.max_date_difference_hours,
            description_similarity_threshold=self.description_similarity_threshold,
            amount_tolerance=self.amount_tolerance,
        )

    @property
    def ar_config(self) -> ARConfig:
        return ARConfig(
            enabled=self.ar_enabled,
            assumptions=CollectionAssumptions(
                on_time_rate=self.ar_on_time_rate,
                overdue_collection_rate=self.ar_overdue_collection_rate,
                average_delay_days=self.ar_average_delay_days,
            ),
        )

    @property
    def invoicing_client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "base_url": self.invoicing_base_url,
            "max_pages": self.invoicing_max_pages,
        }
        if self.invoicing_api_key:
            kwargs["api_key"] = self.invoicing_api_key
        return kwargs


@lru_cache
def get_settings() -> Settings:
    """Load and cache settings, letting Streamlit secrets override env vars."""

    overrides: dict[str, Any] = {}
    secrets_section = _streamlit_section(SECRETS_SECTION)
    if secrets_section:
        overrides = {key: value for key, value in secrets_section.items() if key in Settings.model_fields}

    return Settings(**{k: v for k, v in overrides.items() if v is not None})
