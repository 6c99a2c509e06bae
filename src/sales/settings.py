"""Runtime settings for the fulfillment workflows.

Provides get_settings() / set_settings() / reset_settings() so that tests
and deployments can inject values instead of relying on literals buried in
the handlers.
"""

import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class FulfillmentSettings:
    """Configuration consumed by the order workflows."""

    # Store whose on-hand stock is decremented when a rider is dispatched
    default_dispatch_store_ref: str = "1"
    # When on, line totals add tax on top of the unit price instead of
    # treating the unit price as gross
    tax_additive: bool = False
    default_page_size: int = 25

    @classmethod
    def from_env(cls) -> "FulfillmentSettings":
        return cls(
            default_dispatch_store_ref=os.environ.get("SALES_DEFAULT_DISPATCH_STORE", "1"),
            tax_additive=os.environ.get("SALES_TAX_ADDITIVE", "").strip().lower() in _TRUTHY,
            default_page_size=int(os.environ.get("SALES_PAGE_SIZE", "25")),
        )


_current_settings: FulfillmentSettings | None = None


def get_settings() -> FulfillmentSettings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = FulfillmentSettings.from_env()
    return _current_settings


def set_settings(settings: FulfillmentSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _current_settings
    _current_settings = None
