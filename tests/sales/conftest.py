import pytest

from sales.catalogue import reset_catalog
from sales.invoicing import reset_invoicing
from sales.riders import reset_rider_directory
from sales.settings import reset_settings
from sales.stock import reset_inventory
from sales.storage import reset_storage


@pytest.fixture(scope="session")
def _sales_domain():
    from sales.domain import sales

    return sales


@pytest.fixture(autouse=True)
def run_around_tests(_sales_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _sales_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()

    reset_rider_directory()
    reset_inventory()
    reset_catalog()
    reset_storage()
    reset_invoicing()
    reset_settings()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def riders():
    from sales.riders import set_rider_directory
    from sales.riders.fake_adapter import FakeRiderDirectory

    directory = FakeRiderDirectory()
    directory.add_rider("rider-1", "Juma Otieno", contact="0712000111", company_name="Swift Riders")
    directory.add_rider("rider-2", "Amina Wanjiru", contact="0722000222")
    set_rider_directory(directory)
    return directory


@pytest.fixture()
def inventory():
    from sales.stock import set_inventory
    from sales.stock.fake_adapter import FakeInventory
    from sales.stock.port import Store

    fake = FakeInventory(stores=[Store(id="1", name="Main"), Store(id="2", name="Westlands")])
    set_inventory(fake)
    return fake


@pytest.fixture()
def catalog():
    from sales.catalogue import set_catalog
    from sales.catalogue.fake_adapter import FakeProductCatalog

    fake = FakeProductCatalog()
    fake.add_product("prod-1", "Cooking Oil 5L", code="OIL-5", selling_price=100.0, cost_price=70.0)
    fake.add_product("prod-2", "Maize Flour 2kg", code="FLR-2", selling_price=50.0, cost_price=35.5)
    set_catalog(fake)
    return fake


@pytest.fixture()
def storage():
    from sales.storage import set_storage
    from sales.storage.fake_adapter import FakeFileStorage

    fake = FakeFileStorage()
    set_storage(fake)
    return fake


@pytest.fixture()
def invoicing():
    from sales.invoicing import set_invoicing
    from sales.invoicing.fake_adapter import FakeInvoicingService

    fake = FakeInvoicingService()
    set_invoicing(fake)
    return fake


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
DEFAULT_ITEMS = [
    {"product_ref": "prod-1", "product_name": "Cooking Oil 5L", "quantity": 5, "unit_price": 100.0},
    {
        "product_ref": "prod-2",
        "product_name": "Maize Flour 2kg",
        "quantity": 2,
        "unit_price": 50.0,
        "tax_class": "zero_rated",
    },
]


@pytest.fixture()
def make_order():
    """Register an order and move it along the lifecycle without side effects."""
    from protean import current_domain

    from sales.order.order import FulfillmentStatus, SalesOrder

    counter = {"n": 0}

    def _make(status=FulfillmentStatus.NEW, items=None, **kwargs):
        counter["n"] += 1
        kwargs.setdefault("order_number", f"SO-{counter['n']:04d}")
        kwargs.setdefault("customer_ref", "cust-1")
        kwargs.setdefault("customer_name", "Mama Mboga Stores")
        order = SalesOrder.create(items_data=items or DEFAULT_ITEMS, **kwargs)

        if status != FulfillmentStatus.NEW:
            order.approve("admin-1")
        if status == FulfillmentStatus.IN_TRANSIT:
            order.assign_rider("rider-1", "Juma Otieno", "1", "stock-1")
        elif status == FulfillmentStatus.CANCELLED:
            order.cancel("admin-1")
        elif status == FulfillmentStatus.DECLINED:
            order.decline("admin-1")

        current_domain.repository_for(SalesOrder).add(order)
        return current_domain.repository_for(SalesOrder).get(order.id)

    return _make
