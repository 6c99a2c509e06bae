"""Product catalog factory.

Provides get_catalog() / set_catalog(); FakeProductCatalog is the default.
"""

from sales.catalogue.fake_adapter import FakeProductCatalog
from sales.catalogue.port import Product, ProductCatalog

__all__ = ["Product", "ProductCatalog", "get_catalog", "set_catalog", "reset_catalog"]

_current_catalog: ProductCatalog | None = None


def get_catalog() -> ProductCatalog:
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = FakeProductCatalog()
    return _current_catalog


def set_catalog(catalog: ProductCatalog) -> None:
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    global _current_catalog
    _current_catalog = None
