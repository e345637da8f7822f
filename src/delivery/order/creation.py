"""Order creation and pre-assignment — commands and handler."""

import json

from protean import handle
from protean.fields import Boolean, Date, Identifier, String, Text
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.order.order import Order


@delivery.command(part_of="Order")
class PlaceOrder:
    """Place a linen delivery order for a property."""

    property_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of item dicts
    include_pickup = Boolean(default=True)
    urgency = String(max_length=10)
    scheduled_date = Date()
    scheduled_time = String(max_length=5)
    cleaning_id = Identifier()


@delivery.command(part_of="Order")
class AssignOrder:
    """Pre-assign a pending order to a courier."""

    order_id = Identifier(required=True)
    rider_id = Identifier(required=True)


@delivery.command_handler(part_of=Order)
class OrderCreationHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        order = Order.place(
            property_id=command.property_id,
            items_data=items_data,
            include_pickup=command.include_pickup is not False,
            urgency=command.urgency,
            scheduled_date=command.scheduled_date,
            scheduled_time=command.scheduled_time,
            cleaning_id=command.cleaning_id,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(AssignOrder)
    def assign_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.assign_to(command.rider_id)
        repo.add(order)
