"""Product catalog port (abstract interface).

Reference data only: names for line-item snapshots, selling prices for
new lines and cost prices for valuing stock returns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    code: str | None = None
    selling_price: float = 0.0
    cost_price: float | None = None


class ProductCatalog(ABC):
    @abstractmethod
    def get_product(self, product_ref: str) -> Product | None:
        """Return the product, or None when it is not in the catalog."""
        ...
