"""Order domain events — immutable facts about order lifecycle and pickup settlement.

All events are past tense, versioned, and carry enough data for the order
board projector to mirror the order without reading the aggregate back.
"""

from protean.fields import Boolean, Date, DateTime, Identifier, Integer, String, Text

from delivery.domain import delivery


@delivery.event(part_of="Order")
class OrderPlaced:
    """A delivery order was placed for a property."""

    __version__ = 1

    order_id = Identifier(required=True)
    property_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of item dicts
    item_count = Integer(required=True)
    include_pickup = Boolean(default=True)
    urgency = String(required=True)
    scheduled_date = Date()
    scheduled_time = String()
    cleaning_id = Identifier()
    created_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderAssigned:
    """An operator pre-assigned the order to a courier."""

    __version__ = 1

    order_id = Identifier(required=True)
    rider_id = Identifier(required=True)
    assigned_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderClaimed:
    """A courier took the order into their bag."""

    __version__ = 1

    order_id = Identifier(required=True)
    property_id = Identifier(required=True)
    rider_id = Identifier(required=True)
    started_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderReleased:
    """A courier put the order back before departing."""

    __version__ = 1

    order_id = Identifier(required=True)
    property_id = Identifier(required=True)
    released_by = Identifier(required=True)
    released_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderDeparted:
    """The courier left for the property with the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    rider_id = Identifier(required=True)
    departed_at = DateTime(required=True)


@delivery.event(part_of="Order")
class OrderDelivered:
    """Clean linen was delivered; this order now owes a pickup of its own."""

    __version__ = 1

    order_id = Identifier(required=True)
    property_id = Identifier(required=True)
    rider_id = Identifier()
    with_pickup = Boolean(default=False)
    pickup_from_orders = Text()  # JSON list of source order ids
    pickup_has_issues = Boolean(default=False)
    pickup_note = String()
    delivered_at = DateTime(required=True)


@delivery.event(part_of="Order")
class PickupCollected:
    """The linen this order delivered was retrieved by a later order."""

    __version__ = 1

    order_id = Identifier(required=True)
    property_id = Identifier(required=True)
    collected_in_order_id = Identifier(required=True)
    collected_at = DateTime(required=True)
