"""FastAPI routes for the Delivery domain — orders and courier boards."""

import json
from datetime import date

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from delivery.api.schemas import (
    AssignOrderRequest,
    BoardCardResponse,
    CourierRequest,
    DepartureResponse,
    OrderIdResponse,
    PickupResponse,
    PlaceOrderRequest,
    ReleaseOrderRequest,
    SettlePickupRequest,
    SettlementResponse,
    StatusResponse,
)
from delivery.order.creation import AssignOrder, PlaceOrder
from delivery.order.lifecycle import claim_order, deliver_order, depart_courier, release_order
from delivery.order.ownership import OwnershipConflict
from delivery.order.settlement import PickupReport, retry_settlement, settle_pickup
from delivery.projections.courier_board import CourierBoard, cached_board
from delivery.reconciliation.refresh import refresh_pickup
from delivery.utils.logging import bind_courier


def register_conflict_handler(app: FastAPI) -> None:
    """Map ownership races and stale writes to HTTP 409."""

    @app.exception_handler(OwnershipConflict)
    async def ownership_conflict_handler(request: Request, exc: OwnershipConflict):
        return JSONResponse(
            status_code=409,
            content={
                "error": str(exc),
                "order_id": exc.order_id,
                "owner_id": exc.owner_id,
            },
        )

    @app.exception_handler(ExpectedVersionError)
    async def stale_write_handler(request: Request, exc: ExpectedVersionError):
        return JSONResponse(
            status_code=409,
            content={"error": "Order was changed by another request, reload and try again"},
        )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest) -> OrderIdResponse:
    command = PlaceOrder(
        property_id=body.property_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        include_pickup=body.include_pickup,
        urgency=body.urgency,
        scheduled_date=body.scheduled_date,
        scheduled_time=body.scheduled_time,
        cleaning_id=body.cleaning_id,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.get("/{order_id}/pickup", response_model=PickupResponse)
async def get_pickup(order_id: str) -> PickupResponse:
    projection = refresh_pickup(order_id)
    return PickupResponse(order_id=order_id, **projection.to_dict())


@order_router.put("/{order_id}/assign", response_model=StatusResponse)
async def assign_order(order_id: str, body: AssignOrderRequest) -> StatusResponse:
    current_domain.process(AssignOrder(order_id=order_id, rider_id=body.rider_id), asynchronous=False)
    return StatusResponse()


@order_router.put("/{order_id}/claim", response_model=StatusResponse)
async def claim(order_id: str, body: CourierRequest) -> StatusResponse:
    claim_order(order_id, body.courier_id)
    return StatusResponse(status="claimed")


@order_router.put("/{order_id}/release", response_model=StatusResponse)
async def release(order_id: str, body: ReleaseOrderRequest) -> StatusResponse:
    release_order(order_id, body.courier_id)
    return StatusResponse(status="released")


@order_router.put("/{order_id}/deliver", response_model=StatusResponse)
async def deliver(order_id: str) -> StatusResponse:
    deliver_order(order_id)
    return StatusResponse(status="delivered")


@order_router.put("/{order_id}/settle", response_model=SettlementResponse)
async def settle(order_id: str, body: SettlePickupRequest) -> SettlementResponse:
    checks = tuple(check.model_dump() for check in body.checks) if body.checks is not None else None
    result = settle_pickup(order_id, PickupReport(checks=checks, note=body.note))
    return SettlementResponse(
        order_id=result.order_id,
        settled=result.settled,
        already_settled=result.already_settled,
        failed=result.failed,
        has_issues=result.has_issues,
    )


@order_router.put("/{order_id}/settle/retry", response_model=SettlementResponse)
async def retry_settle(order_id: str) -> SettlementResponse:
    result = retry_settlement(order_id)
    return SettlementResponse(
        order_id=result.order_id,
        settled=result.settled,
        already_settled=result.already_settled,
        failed=result.failed,
        has_issues=result.has_issues,
    )


# ---------------------------------------------------------------------------
# Courier Router
# ---------------------------------------------------------------------------
courier_router = APIRouter(prefix="/couriers", tags=["couriers"])


@courier_router.put("/{courier_id}/depart", response_model=DepartureResponse)
async def depart(courier_id: str) -> DepartureResponse:
    bind_courier(courier_id)
    result = depart_courier(courier_id)
    return DepartureResponse(courier_id=result.courier_id, departed=result.departed, failed=result.failed)


@courier_router.get("/{courier_id}/available", response_model=list[BoardCardResponse])
async def available_orders(courier_id: str, day: date | None = None) -> list[dict]:
    return [card.to_dict() for card in CourierBoard.load().available_for(courier_id, day)]


@courier_router.get("/{courier_id}/future", response_model=list[BoardCardResponse])
async def future_orders(courier_id: str, day: date | None = None) -> list[dict]:
    return [card.to_dict() for card in CourierBoard.load().future_for(courier_id, day)]


@courier_router.get("/{courier_id}/picking", response_model=list[BoardCardResponse])
async def picking_orders(courier_id: str) -> list[dict]:
    return [card.to_dict() for card in CourierBoard.load().picking_for(courier_id)]


@courier_router.get("/{courier_id}/in-transit", response_model=list[BoardCardResponse])
async def in_transit_orders(courier_id: str) -> list[dict]:
    return [card.to_dict() for card in CourierBoard.load().in_transit_for(courier_id)]


@courier_router.get("/{courier_id}/delivered", response_model=list[BoardCardResponse])
async def delivered_orders(courier_id: str, day: date | None = None) -> list[dict]:
    return [card.to_dict() for card in CourierBoard.load().delivered_today_for(courier_id, day)]


@courier_router.get("/{courier_id}/board")
async def board(courier_id: str, day: date | None = None) -> dict:
    return CourierBoard.load().board_for(courier_id, day)


@courier_router.get("/{courier_id}/board/cached")
async def board_cached(courier_id: str) -> dict:
    snapshot = cached_board(courier_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No cached board for courier")
    return snapshot
