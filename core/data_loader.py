"""Loading of bank export files into raw transaction records."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Final

import pandas as pd

from core.models import RawTransaction

__all__ = ["RAW_COLUMNS", "load_bank_export", "load_raw_transactions"]


_CACHE_SIZE: Final[int] = 8

RAW_COLUMNS: Final[tuple[str, ...]] = (
    "Details",
    "Posting Date",
    "Description",
    "Amount",
    "Type",
    "Balance",
    "Check or Slip #",
)


@lru_cache(maxsize=_CACHE_SIZE)
def load_bank_export(csv_path: str | Path) -> pd.DataFrame:
    """Return the bank export at ``csv_path`` as a dataframe of raw columns.

    Results are cached so repeated recomputes over the same file skip the
    disk read. Callers must not mutate the returned frame.
    """

    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    df = pd.read_csv(path, index_col=False, dtype={"Check or Slip #": str})
    missing = [column for column in RAW_COLUMNS if column not in df.columns and column != "Check or Slip #"]
    if missing:
        raise ValueError(f"Bank export is missing columns: {', '.join(missing)}")
    if "Check or Slip #" not in df.columns:
        df["Check or Slip #"] = None
    return df.loc[:, list(RAW_COLUMNS)]


def load_raw_transactions(csv_path: str | Path) -> list[RawTransaction]:
    df = load_bank_export(str(csv_path))
    return [
        {column: (None if pd.isna(value) else value) for column, value in record.items()}  # type: ignore[misc]
        for record in df.to_dict(orient="records")
    ]
