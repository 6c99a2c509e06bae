"""In-memory product catalog for development and testing."""

from sales.catalogue.port import Product, ProductCatalog


class FakeProductCatalog(ProductCatalog):
    def __init__(self, products: list[Product] | None = None) -> None:
        self.products: dict[str, Product] = {str(p.id): p for p in (products or [])}
        self.calls: list[dict] = []

    def add_product(self, product_ref: str, name: str, **details) -> Product:
        product = Product(id=str(product_ref), name=name, **details)
        self.products[product.id] = product
        return product

    def get_product(self, product_ref: str) -> Product | None:
        self.calls.append({"method": "get_product", "product_ref": str(product_ref)})
        return self.products.get(str(product_ref))
