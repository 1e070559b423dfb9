"""Application configuration utilities."""

from .settings import DEFAULT_INVOICING_BASE_URL, Settings, get_settings

__all__ = [
    "DEFAULT_INVOICING_BASE_URL",
    "Settings",
    "get_settings",
]
