"""Orders directory: listing, filtering and paginating sales orders."""

import math
from dataclasses import dataclass, field, replace
from datetime import date

from protean.utils.query import Q

from sales.domain import sales
from sales.order.order import FulfillmentStatus, SalesOrder


@dataclass(frozen=True)
class OrderQuery:
    """Filters and page of an order listing.

    ``start_date`` and ``end_date`` are inclusive bounds on ``order_date``;
    ``search`` matches the order number or the customer name.
    """

    fulfillment_status: int | None = None
    rider_ref: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    search: str | None = None
    page: int = 1
    limit: int = 25

    def without_status(self) -> "OrderQuery":
        return replace(self, fulfillment_status=None)


@dataclass
class OrderPage:
    items: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 25

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.limit)) if self.limit else 1


@sales.repository(part_of=SalesOrder)
class SalesOrderRepository:
    def _filtered(self, query: OrderQuery):
        queryset = self._dao.query
        if query.fulfillment_status is not None:
            queryset = queryset.filter(fulfillment_status=int(query.fulfillment_status))
        if query.rider_ref:
            queryset = queryset.filter(rider_ref=str(query.rider_ref))
        if query.start_date:
            queryset = queryset.filter(order_date__gte=query.start_date)
        if query.end_date:
            queryset = queryset.filter(order_date__lte=query.end_date)
        if query.search and query.search.strip():
            term = query.search.strip()
            queryset = queryset.filter(Q(order_number__icontains=term) | Q(customer_name__icontains=term))
        return queryset

    def search(self, query: OrderQuery) -> OrderPage:
        """Return one page of matching orders, newest first."""
        page = max(1, int(query.page or 1))
        limit = max(1, int(query.limit or 1))
        results = self._filtered(query).order_by("-order_date").offset((page - 1) * limit).limit(limit).all()
        return OrderPage(items=list(results.items), total=results.total, page=page, limit=limit)

    def status_counts(self, query: OrderQuery) -> dict[int, int]:
        """Count matching orders per fulfillment status, ignoring the status filter."""
        base = self._filtered(query.without_status())
        return {status.value: base.filter(fulfillment_status=status.value).all().total for status in FulfillmentStatus}
