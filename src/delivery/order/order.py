"""Order aggregate (CQRS) — the core of the delivery domain.

An Order carries clean linen to a property. Once delivered it becomes a
pickup-debt source: its own linen is owed back until a later order at the
same property collects it. What a given order should collect is never
stored here; it is recomputed from the delivered orders at the property
(see ``delivery.reconciliation``).

State Machine:
    PENDING → ASSIGNED → PICKING
    {PENDING, ASSIGNED} → PICKING → IN_TRANSIT → DELIVERED
    PICKING → PENDING (release)
"""

import json
from datetime import UTC, date, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    Date,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
)

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


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    PICKING = "PICKING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"


class Urgency(Enum):
    NORMAL = "normal"
    URGENT = "urgent"


class PickupCheckStatus(Enum):
    OK = "ok"
    MISSING = "missing"
    DIFFERENT = "different"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.ASSIGNED, OrderStatus.PICKING},
    OrderStatus.ASSIGNED: {OrderStatus.PICKING},
    OrderStatus.PICKING: {OrderStatus.PENDING, OrderStatus.IN_TRANSIT},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # terminal
}

OPEN_STATUSES = frozenset({OrderStatus.PENDING.value, OrderStatus.ASSIGNED.value})


def is_eligible(order, courier_id: str | None = None) -> bool:
    """Whether ``order`` is available to ``courier_id``.

    An order is eligible while it waits for a courier (PENDING or ASSIGNED)
    and is either unowned or already owned by the requesting courier. The
    courier board, the claim handler and pickup reconciliation all go through
    this one predicate.
    """
    if order.status not in OPEN_STATUSES:
        return False
    return not order.rider_id or (courier_id is not None and str(order.rider_id) == str(courier_id))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@delivery.entity(part_of="Order")
class LineItem:
    """A clean-linen or supply line being delivered."""

    item_id = String(required=True, max_length=100)
    name = String(required=True, max_length=200)
    quantity = Integer(required=True, min_value=0)
    category_id = String(max_length=100)
    item_type = String(max_length=100)


@delivery.entity(part_of="Order")
class PickupCheck:
    """What the courier actually found for one expected pickup item."""

    item_id = String(required=True, max_length=100)
    status = String(
        max_length=20,
        choices=PickupCheckStatus,
        default=PickupCheckStatus.OK.value,
    )
    actual_quantity = Integer(min_value=0)
    note = String(max_length=500)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@delivery.aggregate
class Order:
    property_id = Identifier(required=True)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    rider_id = Identifier()
    items = HasMany(LineItem)
    include_pickup = Boolean(default=True)
    urgency = String(choices=Urgency, default=Urgency.NORMAL.value)
    scheduled_date = Date()
    scheduled_time = String(max_length=5)  # HH:MM
    cleaning_id = Identifier()

    # Authoritative settlement state: has the linen THIS order delivered
    # been collected by a later order?
    pickup_completed = Boolean(default=False)
    pickup_completed_at = DateTime()
    pickup_completed_in_order_id = Identifier()
    pickup_settlement_key = String(max_length=255)

    # Audit of the pickup this order performed on delivery
    pickup_checks = HasMany(PickupCheck)
    pickup_note = String(max_length=1000)
    pickup_has_issues = Boolean(default=False)
    pickup_done_at = DateTime()
    pickup_from_orders = Text()  # JSON list of settled source order ids

    created_at = DateTime()
    assigned_at = DateTime()
    started_at = DateTime()
    departed_at = DateTime()
    delivered_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def collected_linen_was_delivered(self):
        if self.pickup_completed and self.status != OrderStatus.DELIVERED.value:
            raise ValidationError({"pickup_completed": ["Only delivered orders can have their linen collected"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        property_id: str,
        items_data: list[dict],
        include_pickup: bool = True,
        urgency: str | None = None,
        scheduled_date: date | None = None,
        scheduled_time: str | None = None,
        cleaning_id: str | None = None,
    ):
        """Place a new delivery order for a property."""
        now = datetime.now(UTC)
        order = cls(
            property_id=property_id,
            status=OrderStatus.PENDING.value,
            include_pickup=include_pickup,
            urgency=urgency or Urgency.NORMAL.value,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            cleaning_id=cleaning_id,
            pickup_completed=False,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(LineItem(**item_data))
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                property_id=property_id,
                items=json.dumps(items_data),
                item_count=len(items_data),
                include_pickup=include_pickup,
                urgency=order.urgency,
                scheduled_date=scheduled_date,
                scheduled_time=scheduled_time,
                cleaning_id=cleaning_id,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def is_owned_by(self, courier_id: str) -> bool:
        return bool(self.rider_id) and str(self.rider_id) == str(courier_id)

    # -------------------------------------------------------------------
    # Assignment and claim
    # -------------------------------------------------------------------
    def assign_to(self, rider_id: str) -> None:
        """Pre-assign the order to a courier without taking it into a bag."""
        self._assert_can_transition(OrderStatus.ASSIGNED)
        now = datetime.now(UTC)
        self.status = OrderStatus.ASSIGNED.value
        self.rider_id = rider_id
        self.assigned_at = now
        self.updated_at = now
        self.raise_(
            OrderAssigned(
                order_id=str(self.id),
                rider_id=rider_id,
                assigned_at=now,
            )
        )

    def claim(self, courier_id: str) -> None:
        """Take the order into the courier's bag.

        Ownership by another courier is checked by the caller, which turns
        it into a conflict; here it is just an illegal claim.
        """
        self._assert_can_transition(OrderStatus.PICKING)
        if not is_eligible(self, courier_id):
            raise ValidationError({"rider_id": ["Order is owned by another courier"]})

        now = datetime.now(UTC)
        self.status = OrderStatus.PICKING.value
        self.rider_id = courier_id
        self.started_at = now
        self.updated_at = now
        self.raise_(
            OrderClaimed(
                order_id=str(self.id),
                property_id=str(self.property_id),
                rider_id=courier_id,
                started_at=now,
            )
        )

    def release(self) -> None:
        """Put the order back in the pool. Fully reversible, no penalty."""
        self._assert_can_transition(OrderStatus.PENDING)
        now = datetime.now(UTC)
        released_by = str(self.rider_id) if self.rider_id else ""
        self.status = OrderStatus.PENDING.value
        self.rider_id = None
        self.started_at = None
        self.updated_at = now
        self.raise_(
            OrderReleased(
                order_id=str(self.id),
                property_id=str(self.property_id),
                released_by=released_by,
                released_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Departure
    # -------------------------------------------------------------------
    def depart(self) -> None:
        self._assert_can_transition(OrderStatus.IN_TRANSIT)
        now = datetime.now(UTC)
        self.status = OrderStatus.IN_TRANSIT.value
        self.departed_at = now
        self.updated_at = now
        self.raise_(
            OrderDeparted(
                order_id=str(self.id),
                rider_id=str(self.rider_id),
                departed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    def deliver(
        self,
        pickup_checks: list[dict] | None = None,
        pickup_note: str | None = None,
        pickup_from_orders: list[str] | None = None,
    ) -> None:
        """Record the delivery, optionally with the pickup performed on the visit.

        The linen delivered now is owed back, so ``pickup_completed`` is
        reset to False whether or not a pickup happened. Passing
        ``pickup_checks`` (even an empty list) records that a pickup took
        place.
        """
        self._assert_can_transition(OrderStatus.DELIVERED)
        with_pickup = pickup_checks is not None
        if with_pickup and not self.include_pickup:
            raise ValidationError({"include_pickup": ["Order does not include a pickup"]})
        checks = [PickupCheck(**check_data) for check_data in pickup_checks or []]

        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.pickup_completed = False
        self.updated_at = now

        if with_pickup:
            for check in checks:
                self.add_pickup_checks(check)
            self.pickup_note = pickup_note or ""
            self.pickup_has_issues = any(check.status != PickupCheckStatus.OK.value for check in checks)
            self.pickup_done_at = now
            self.pickup_from_orders = json.dumps(list(pickup_from_orders or []))

        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                property_id=str(self.property_id),
                rider_id=str(self.rider_id) if self.rider_id else None,
                with_pickup=with_pickup,
                pickup_from_orders=json.dumps(list(pickup_from_orders or [])),
                pickup_has_issues=bool(self.pickup_has_issues),
                pickup_note=self.pickup_note or "",
                delivered_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Settlement
    # -------------------------------------------------------------------
    def mark_pickup_collected(self, collected_in_order_id: str, settlement_key: str | None = None) -> bool:
        """Retire this order's pickup debt. Returns False when already settled.

        Settlement happens at most once: a retry carrying the same key, or a
        late settlement from another order, leaves the first audit intact.
        """
        if OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise ValidationError({"status": ["Only delivered orders can have their linen collected"]})
        if str(collected_in_order_id) == str(self.id):
            raise ValidationError({"collected_in_order_id": ["An order cannot collect its own linen"]})
        if self.pickup_completed:
            return False

        now = datetime.now(UTC)
        self.pickup_completed = True
        self.pickup_completed_at = now
        self.pickup_completed_in_order_id = collected_in_order_id
        self.pickup_settlement_key = settlement_key or f"{collected_in_order_id}:{self.id}"
        self.updated_at = now
        self.raise_(
            PickupCollected(
                order_id=str(self.id),
                property_id=str(self.property_id),
                collected_in_order_id=collected_in_order_id,
                collected_at=now,
            )
        )
        return True

    def settled_sources(self) -> list[str]:
        return json.loads(self.pickup_from_orders) if self.pickup_from_orders else []
