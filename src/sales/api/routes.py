"""FastAPI routes for the Sales domain (order fulfillment)."""

import json
from datetime import date

from fastapi import APIRouter, Header, Query
from protean.utils.globals import current_domain

from sales.api.schemas import (
    AssignRiderRequest,
    CompleteDeliveryRequest,
    DeliveryResponse,
    EditOrderRequest,
    EditOrderResponse,
    InvoiceResponse,
    LineBreakdownResponse,
    LineItemResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderSummaryResponse,
    OrderTotalsResponse,
    ReceiveToStockRequest,
    ReturnLineResponse,
    RiderSchema,
    StatusResponse,
    StockReturnDraftResponse,
    StockReturnResponse,
    StoreSchema,
)
from sales.errors import DependencyFailure
from sales.order import pricing
from sales.order.assignment import AssignRider
from sales.order.delivery import CompleteDelivery
from sales.order.editing import EditOrder
from sales.order.invoicing import ConvertToInvoice
from sales.order.order import SalesOrder
from sales.order.repository import OrderQuery
from sales.order.stock_return import ReceiveToStock, default_return_note, draft_stock_return
from sales.riders import get_rider_directory
from sales.settings import get_settings
from sales.stock import get_inventory

order_router = APIRouter(prefix="/orders", tags=["orders"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _summary_fields(order):
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "order_date": order.order_date,
        "customer_ref": str(order.customer_ref),
        "customer_name": order.customer_name,
        "fulfillment_status": order.fulfillment_status,
        "fulfillment_label": order.status.label,
        "billing_status": order.billing_status,
        "rider_ref": str(order.rider_ref) if order.rider_ref else None,
        "rider_name": order.rider_name,
        "total_amount": order.total_amount,
    }


def _order_detail(order) -> OrderDetailResponse:
    delivery = None
    if order.delivery is not None:
        delivery = DeliveryResponse(
            recipient_name=order.delivery.recipient_name,
            recipient_phone=order.delivery.recipient_phone,
            proof_image_ref=order.delivery.proof_image_ref,
            notes=order.delivery.notes,
            completed_at=order.delivery.completed_at,
        )

    stock_return = None
    if order.return_record is not None:
        stock_return = StockReturnResponse(
            store_ref=str(order.return_record.store_ref),
            notes=order.return_record.notes,
            received_by=str(order.return_record.received_by),
            returned_at=order.return_record.returned_at,
            items=[
                ReturnLineResponse(
                    line_item_id=str(line.line_item_id),
                    product_ref=str(line.product_ref),
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                )
                for line in order.returned_items
            ],
        )

    return OrderDetailResponse(
        **_summary_fields(order),
        expected_delivery_date=order.expected_delivery_date,
        notes=order.notes,
        assigned_at=order.assigned_at,
        invoice_ref=str(order.invoice_ref) if order.invoice_ref else None,
        invoice_number=order.invoice_number,
        items=[
            LineItemResponse(
                id=str(item.id),
                product_ref=str(item.product_ref),
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                tax_class=item.tax_class,
                line_total=item.line_total,
            )
            for item in order.items
        ],
        delivery=delivery,
        stock_return=stock_return,
    )


def _riders():
    try:
        riders = get_rider_directory().list_riders()
    except Exception as exc:
        raise DependencyFailure("rider_directory", exc) from exc
    return [RiderSchema(id=str(r.id), name=r.name, contact=r.contact, company_name=r.company_name) for r in riders]


def _stores():
    try:
        stores = get_inventory().list_stores()
    except Exception as exc:
        raise DependencyFailure("inventory", exc) from exc
    return [StoreSchema(id=str(s.id), name=s.name) for s in stores]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
@order_router.get("", response_model=OrderListResponse)
async def list_orders(
    status: int | None = Query(default=None, ge=0, le=6),
    rider_ref: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1, le=200),
) -> OrderListResponse:
    """List orders with filters, status counts and the dispatch dropdown data."""
    query = OrderQuery(
        fulfillment_status=status,
        rider_ref=rider_ref,
        start_date=start_date,
        end_date=end_date,
        search=search,
        page=page,
        limit=limit or get_settings().default_page_size,
    )
    repo = current_domain.repository_for(SalesOrder)
    result = repo.search(query)

    return OrderListResponse(
        orders=[OrderSummaryResponse(**_summary_fields(order)) for order in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
        status_counts=repo.status_counts(query),
        riders=_riders(),
        stores=_stores(),
    )


@order_router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(order_id: str) -> OrderDetailResponse:
    order = current_domain.repository_for(SalesOrder).get(order_id)
    return _order_detail(order)


@order_router.get("/{order_id}/totals", response_model=OrderTotalsResponse)
async def get_order_totals(order_id: str) -> OrderTotalsResponse:
    """Net, tax and gross figures derived from the stored line totals."""
    order = current_domain.repository_for(SalesOrder).get(order_id)
    totals = order.totals()
    lines = []
    for item in order.items:
        breakdown = pricing.decompose(item.line_total, item.tax_class)
        lines.append(
            LineBreakdownResponse(
                line_item_id=str(item.id),
                product_name=item.product_name,
                tax_class=item.tax_class,
                net=float(breakdown.net),
                tax=float(breakdown.tax),
                gross=float(breakdown.gross),
            )
        )
    return OrderTotalsResponse(**totals.as_dict(), lines=lines)


@order_router.get("/{order_id}/stock-return-draft", response_model=StockReturnDraftResponse)
async def get_stock_return_draft(order_id: str) -> StockReturnDraftResponse:
    """Default receive-to-stock lines for the return form."""
    order = current_domain.repository_for(SalesOrder).get(order_id)
    return StockReturnDraftResponse(
        store_ref=get_settings().default_dispatch_store_ref,
        notes=default_return_note(order),
        items=[ReturnLineResponse(**line) for line in draft_stock_return(order)],
        stores=_stores(),
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@order_router.put("/{order_id}", response_model=EditOrderResponse)
async def edit_order(
    order_id: str,
    body: EditOrderRequest,
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> EditOrderResponse:
    command = EditOrder(
        order_id=order_id,
        expected_delivery_date=body.expected_delivery_date,
        notes=body.notes,
        billing_status=body.billing_status,
        fulfillment_status=body.fulfillment_status,
        items=json.dumps([item.model_dump() for item in body.items]) if body.items else None,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
    )
    changed = current_domain.process(command, asynchronous=False)
    return EditOrderResponse(changed=changed)


@order_router.post("/{order_id}/rider", response_model=StatusResponse)
async def assign_rider(
    order_id: str,
    body: AssignRiderRequest,
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> StatusResponse:
    command = AssignRider(
        order_id=order_id,
        rider_id=body.rider_id,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
    )
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@order_router.post("/{order_id}/delivery", response_model=StatusResponse)
async def complete_delivery(
    order_id: str,
    body: CompleteDeliveryRequest,
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> StatusResponse:
    command = CompleteDelivery(
        order_id=order_id,
        recipient_name=body.recipient_name,
        recipient_phone=body.recipient_phone,
        proof_image=body.proof_image,
        proof_image_name=body.proof_image_name,
        notes=body.notes,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
    )
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@order_router.post("/{order_id}/stock-return", response_model=StatusResponse)
async def receive_to_stock(
    order_id: str,
    body: ReceiveToStockRequest,
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> StatusResponse:
    items = None
    if body.items:
        items = json.dumps({key: line.model_dump(exclude_none=True) for key, line in body.items.items()})
    command = ReceiveToStock(
        order_id=order_id,
        store_ref=body.store_ref,
        notes=body.notes,
        items=items,
        actor_id=x_actor_id,
        actor_role=x_actor_role,
    )
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@order_router.post("/{order_id}/invoice", status_code=201, response_model=InvoiceResponse)
async def convert_to_invoice(
    order_id: str,
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> InvoiceResponse:
    command = ConvertToInvoice(order_id=order_id, actor_id=x_actor_id, actor_role=x_actor_role)
    result = current_domain.process(command, asynchronous=False)
    return InvoiceResponse(**result)
