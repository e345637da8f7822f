"""Pydantic API schemas for the Delivery domain.

These are the external API contracts — separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class OrderItemRequest(BaseModel):
    item_id: str
    name: str
    quantity: int = Field(ge=0)
    category_id: str | None = None
    item_type: str | None = None


class PlaceOrderRequest(BaseModel):
    property_id: str
    items: list[OrderItemRequest]
    include_pickup: bool = True
    urgency: Literal["normal", "urgent"] = "normal"
    scheduled_date: date | None = None
    scheduled_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    cleaning_id: str | None = None


class AssignOrderRequest(BaseModel):
    rider_id: str


class CourierRequest(BaseModel):
    courier_id: str


class ReleaseOrderRequest(BaseModel):
    courier_id: str | None = None


class PickupCheckRequest(BaseModel):
    item_id: str
    status: Literal["ok", "missing", "different"] = "ok"
    actual_quantity: int | None = Field(default=None, ge=0)
    note: str | None = None


class SettlePickupRequest(BaseModel):
    checks: list[PickupCheckRequest] | None = None
    note: str = ""


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class PickupLineResponse(BaseModel):
    item_id: str
    name: str
    quantity: int
    category_id: str | None = None


class PickupResponse(BaseModel):
    order_id: str
    property_id: str
    pickup_items: list[PickupLineResponse]
    pickup_from_orders: list[str]


class SettlementResponse(BaseModel):
    order_id: str
    settled: list[str]
    already_settled: list[str]
    failed: list[str]
    has_issues: bool


class DepartureResponse(BaseModel):
    courier_id: str
    departed: list[str]
    failed: list[str]


class BoardCardResponse(BaseModel):
    order_id: str
    property_id: str
    property_name: str = ""
    address: str = ""
    access_info: str = ""
    status: str
    rider_id: str | None = None
    urgency: str
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    cleaning_time: str | None = None
    sort_time: str
    include_pickup: bool
    items: list[dict]
    pickup_items: list[PickupLineResponse]
    pickup_from_orders: list[str]
    delivered_at: str | None = None
