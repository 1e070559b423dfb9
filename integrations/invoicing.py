"""HTTP client for the external invoicing system's receivables endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import pandas as pd
import requests

from analytics.weeks import as_timestamp
from core.models import ReceivableInvoice

__all__ = [
    "InvoicingAPIError",
    "ConnectionCheck",
    "InvoicingClient",
    "parse_invoice",
]

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.meetcampfire.com/coa/api/v1"
OUTSTANDING_STATUSES = frozenset({"open", "past_due"})


class InvoicingAPIError(RuntimeError):
    """Raised when invoices cannot be fetched from the invoicing system."""


@dataclass(frozen=True)
class ConnectionCheck:
    success: bool
    message: str
    invoice_count: Optional[int] = None


def parse_invoice(payload: Mapping[str, Any]) -> ReceivableInvoice:
    """Map one invoice record from the API onto :class:`ReceivableInvoice`."""

    return ReceivableInvoice(
        invoice_id=str(payload["id"]),
        invoice_number=str(payload.get("invoice_number") or payload["id"]),
        client_name=str(payload.get("client_name") or "Unknown client"),
        amount_due=float(payload.get("amount_due") or 0.0),
        due_date=_parse_date(payload.get("due_date")),
        invoice_date=_parse_date(payload.get("invoice_date")),
        terms=payload.get("terms") or None,
        status=str(payload.get("status") or "open"),
    )


class InvoicingClient:
    """Thin wrapper over the invoice listing API.

    ``session`` may be any object exposing ``requests.Session.get``; tests
    inject a fake one.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        max_pages: int = 10,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_pages = max_pages
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def list_outstanding_invoices(self) -> list[ReceivableInvoice]:
        """Return open invoices with an amount still due, following pagination."""

        if not self.is_configured():
            raise InvoicingAPIError("Invoicing API key not configured")

        invoices: list[ReceivableInvoice] = []
        next_url: str | None = f"{self.base_url}/invoice/"
        pages = 0

        while next_url and pages < self.max_pages:
            data = self._get_json(next_url)
            for record in data.get("results", []):
                if record.get("status") not in OUTSTANDING_STATUSES:
                    continue
                try:
                    invoice = parse_invoice(record)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Skipping malformed invoice record %r: %s", record.get("id"), exc)
                    continue
                if invoice.amount_due <= 0:
                    continue
                invoices.append(invoice)
            next_url = data.get("next")
            pages += 1

        if next_url:
            logger.warning("Stopped after %d invoice pages; more invoices may exist", self.max_pages)

        logger.info("Fetched %d outstanding invoice(s) over %d page(s)", len(invoices), pages)
        return invoices

    def test_connection(self) -> ConnectionCheck:
        if not self.is_configured():
            return ConnectionCheck(success=False, message="API key not configured")

        try:
            data = self._get_json(f"{self.base_url}/invoice/", params={"page": 1, "page_size": 1})
        except InvoicingAPIError as exc:
            return ConnectionCheck(success=False, message=str(exc))

        count = data.get("count")
        return ConnectionCheck(
            success=True,
            message="Connection successful",
            invoice_count=int(count) if count is not None else None,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": str(self.api_key),
        }

    def _get_json(self, url: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = self.session.get(url, headers=self._headers(), params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise InvoicingAPIError(f"Invoicing API error: {exc}") from exc
        except ValueError as exc:
            raise InvoicingAPIError("Invoicing API returned malformed JSON") from exc


def _parse_date(value: Any) -> pd.Timestamp | None:
    if value in (None, ""):
        return None
    return as_timestamp(value)
