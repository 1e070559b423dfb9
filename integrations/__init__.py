"""Clients for systems outside the forecasting engine."""

from .invoicing import ConnectionCheck, InvoicingAPIError, InvoicingClient, parse_invoice

__all__ = [
    "ConnectionCheck",
    "InvoicingAPIError",
    "InvoicingClient",
    "parse_invoice",
]
