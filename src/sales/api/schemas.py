"""Pydantic request/response schemas for the Sales Orders API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class LineItemSchema(BaseModel):
    id: str | None = None
    product_ref: str
    product_name: str | None = None
    quantity: int = Field(ge=1)
    unit_price: float | None = Field(default=None, ge=0)
    tax_class: str = "16%"


class LineItemResponse(BaseModel):
    id: str
    product_ref: str
    product_name: str
    quantity: int
    unit_price: float
    tax_class: str
    line_total: float


class DeliveryResponse(BaseModel):
    recipient_name: str
    recipient_phone: str
    proof_image_ref: str | None = None
    notes: str | None = None
    completed_at: datetime


class ReturnLineResponse(BaseModel):
    line_item_id: str
    product_ref: str
    product_name: str | None = None
    quantity: int
    unit_cost: float


class StockReturnResponse(BaseModel):
    store_ref: str
    notes: str | None = None
    received_by: str
    returned_at: datetime
    items: list[ReturnLineResponse] = []


class RiderSchema(BaseModel):
    id: str
    name: str
    contact: str | None = None
    company_name: str | None = None


class StoreSchema(BaseModel):
    id: str
    name: str


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class EditOrderRequest(BaseModel):
    expected_delivery_date: date | None = None
    notes: str | None = None
    billing_status: str | None = None
    fulfillment_status: int | None = Field(default=None, ge=0, le=6)
    items: list[LineItemSchema] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "notes": "Deliver after 2pm",
                    "fulfillment_status": 1,
                }
            ]
        }
    }


class AssignRiderRequest(BaseModel):
    rider_id: str


class CompleteDeliveryRequest(BaseModel):
    recipient_name: str
    recipient_phone: str
    proof_image: str | None = None  # base64
    proof_image_name: str | None = None
    notes: str | None = None


class ReturnLineOverride(BaseModel):
    quantity: int | None = None
    unit_cost: float | None = None


class ReceiveToStockRequest(BaseModel):
    store_ref: str | None = None
    notes: str | None = None
    # Keyed by line item id; lines left out are returned in full
    items: dict[str, ReturnLineOverride] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "store_ref": "1",
                    "items": {"line-item-id": {"quantity": 2, "unit_cost": 45.0}},
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Order Response Schemas
# ---------------------------------------------------------------------------
class OrderSummaryResponse(BaseModel):
    id: str
    order_number: str
    order_date: date
    customer_ref: str
    customer_name: str | None = None
    fulfillment_status: int
    fulfillment_label: str
    billing_status: str
    rider_ref: str | None = None
    rider_name: str | None = None
    total_amount: float


class OrderDetailResponse(OrderSummaryResponse):
    expected_delivery_date: date | None = None
    notes: str | None = None
    assigned_at: datetime | None = None
    invoice_ref: str | None = None
    invoice_number: str | None = None
    items: list[LineItemResponse] = []
    delivery: DeliveryResponse | None = None
    stock_return: StockReturnResponse | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderSummaryResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    status_counts: dict[int, int]
    riders: list[RiderSchema] = []
    stores: list[StoreSchema] = []


class LineBreakdownResponse(BaseModel):
    line_item_id: str
    product_name: str
    tax_class: str
    net: float
    tax: float
    gross: float


class OrderTotalsResponse(BaseModel):
    net_subtotal: float
    tax_total: float
    gross_total: float
    lines: list[LineBreakdownResponse] = []


class StockReturnDraftResponse(BaseModel):
    store_ref: str | None = None
    notes: str
    items: list[ReturnLineResponse]
    stores: list[StoreSchema] = []


class EditOrderResponse(BaseModel):
    changed: list[str]


class InvoiceResponse(BaseModel):
    invoice_id: str
    invoice_number: str | None = None


class StatusResponse(BaseModel):
    status: str = "ok"
