"""
Stockledger configuration.

Usage in settings.py:
    STOCKLEDGER = {
        "QUANTITY_SCALE": 4,
        "LOCK_TIMEOUT_MS": 5000,
        "FOLIO_PREFIX": "FRAC-",
        "FOLIO_PADDING": 6,
        "PAGE_SIZE": 20,
        "MAX_PAGE_SIZE": 100,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StockledgerSettings:
    """Stockledger configuration settings."""

    # Decimal places kept for every quantity
    QUANTITY_SCALE: int = 4

    # Max wait for a stock row lock, in milliseconds (0 = database default)
    LOCK_TIMEOUT_MS: int = 5000

    # Fractionation folio format: f"{PREFIX}{n:0{PADDING}d}"
    FOLIO_PREFIX: str = "FRAC-"
    FOLIO_PADDING: int = 6

    # History pagination
    PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100


def get_stockledger_settings() -> StockledgerSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STOCKLEDGER", {})
    return StockledgerSettings(**{
        k: v for k, v in user_settings.items()
        if k in StockledgerSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stockledger_settings(), name)


stockledger_settings = _LazySettings()
