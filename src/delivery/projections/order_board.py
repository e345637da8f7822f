"""Order board — live mirror of every order, fed by order events.

This is the change feed courier boards read from. It carries the order's
items so pickup debt can be recomputed from the board alone.
"""

from protean.core.projector import on
from protean.fields import Boolean, Date, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.order.events import (
    OrderAssigned,
    OrderClaimed,
    OrderDelivered,
    OrderDeparted,
    OrderPlaced,
    OrderReleased,
    PickupCollected,
)
from delivery.order.order import Order, OrderStatus


@delivery.projection
class OrderBoardView:
    order_id = Identifier(identifier=True, required=True)
    property_id = Identifier(required=True)
    status = String(required=True)
    rider_id = Identifier()
    items = Text()  # JSON list of item dicts
    include_pickup = Boolean(default=True)
    pickup_completed = Boolean(default=False)
    pickup_has_issues = Boolean(default=False)
    urgency = String(default="normal")
    scheduled_date = Date()
    scheduled_time = String()
    cleaning_id = Identifier()
    created_at = DateTime()
    started_at = DateTime()
    departed_at = DateTime()
    delivered_at = DateTime()
    updated_at = DateTime()


@delivery.projector(projector_for=OrderBoardView, aggregates=[Order])
class OrderBoardProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        current_domain.repository_for(OrderBoardView).add(
            OrderBoardView(
                order_id=event.order_id,
                property_id=event.property_id,
                status=OrderStatus.PENDING.value,
                items=event.items,
                include_pickup=event.include_pickup is not False,
                pickup_completed=False,
                urgency=event.urgency,
                scheduled_date=event.scheduled_date,
                scheduled_time=event.scheduled_time,
                cleaning_id=event.cleaning_id,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(OrderAssigned)
    def on_order_assigned(self, event):
        repo = current_domain.repository_for(OrderBoardView)
        view = repo.get(event.order_id)
        view.status = OrderStatus.ASSIGNED.value
        view.rider_id = event.rider_id
        view.updated_at = event.assigned_at
        repo.add(view)

    @on(OrderClaimed)
    def on_order_claimed(self, event):
        repo = current_domain.repository_for(OrderBoardView)
        view = repo.get(event.order_id)
        view.status = OrderStatus.PICKING.value
        view.rider_id = event.rider_id
        view.started_at = event.started_at
        view.updated_at = event.started_at
        repo.add(view)

    @on(OrderReleased)
    def on_order_released(self, event):
        repo = current_domain.repository_for(OrderBoardView)
        view = repo.get(event.order_id)
        view.status = OrderStatus.PENDING.value
        view.rider_id = None
        view.started_at = None
        view.updated_at = event.released_at
        repo.add(view)

    @on(OrderDeparted)
    def on_order_departed(self, event):
        repo = current_domain.repository_for(OrderBoardView)
        view = repo.get(event.order_id)
        view.status = OrderStatus.IN_TRANSIT.value
        view.departed_at = event.departed_at
        view.updated_at = event.departed_at
        repo.add(view)

    @on(OrderDelivered)
    def on_order_delivered(self, event):
        repo = current_domain.repository_for(OrderBoardView)
        view = repo.get(event.order_id)
        view.status = OrderStatus.DELIVERED.value
        view.pickup_completed = False
        view.pickup_has_issues = bool(event.pickup_has_issues)
        view.delivered_at = event.delivered_at
        view.updated_at = event.delivered_at
        repo.add(view)

    @on(PickupCollected)
    def on_pickup_collected(self, event):
        repo = current_domain.repository_for(OrderBoardView)
        view = repo.get(event.order_id)
        view.pickup_completed = True
        view.updated_at = event.collected_at
        repo.add(view)
