"""Courier board — what a courier sees on their device.

Built from the order board on every read: the pickup each card shows is
recomputed from the board's current rows rather than stored, so it is never
older than the feed itself. Each board read is also written to the local
cache, which the device can show before the live feed is ready.

Sections:
    available   — eligible orders for today (or without a date, or overdue)
    future      — eligible orders on later dates, read-only, by date
    picking     — orders in the courier's bag
    in_transit  — orders on their way
    delivered   — orders the courier delivered today

Available and bag sections sort urgent first, then by cleaning time, order
time, or 23:59 when neither is known.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime

import structlog
from protean.utils.globals import current_domain

from delivery.collaborators import get_cleaning_schedule, get_local_cache, get_property_directory
from delivery.order.order import OrderStatus, Urgency, is_eligible
from delivery.order.repository import ORDER_SCAN_LIMIT
from delivery.projections.order_board import OrderBoardView
from delivery.reconciliation.engine import OrderSnapshot, PickupProjection, debt_by_property, reconcile

logger = structlog.get_logger(__name__)

LATEST_TIME = "23:59"


@dataclass(frozen=True)
class BoardCard:
    order_id: str
    property_id: str
    status: str
    urgency: str
    sort_time: str
    pickup: PickupProjection
    rider_id: str | None = None
    property_name: str = ""
    address: str = ""
    access_info: str = ""
    scheduled_date: date | None = None
    scheduled_time: str | None = None
    cleaning_time: str | None = None
    include_pickup: bool = True
    items: tuple[dict, ...] = field(default_factory=tuple)
    delivered_at: datetime | None = None

    @property
    def is_urgent(self) -> bool:
        return self.urgency == Urgency.URGENT.value

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "property_id": self.property_id,
            "property_name": self.property_name,
            "address": self.address,
            "access_info": self.access_info,
            "status": self.status,
            "rider_id": self.rider_id,
            "urgency": self.urgency,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "scheduled_time": self.scheduled_time,
            "cleaning_time": self.cleaning_time,
            "sort_time": self.sort_time,
            "include_pickup": self.include_pickup,
            "items": [dict(item) for item in self.items],
            "pickup_items": [line.to_dict() for line in self.pickup.items],
            "pickup_from_orders": list(self.pickup.from_orders),
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
        }


def _today() -> date:
    return datetime.now(UTC).date()


def _board_sort_key(card: BoardCard):
    return (not card.is_urgent, card.sort_time, card.order_id)


def _future_sort_key(card: BoardCard):
    return (card.scheduled_date, not card.is_urgent, card.sort_time, card.order_id)


class CourierBoard:
    """Read-side views over the order board for one observation."""

    def __init__(self, views: list, property_directory=None, cleaning_schedule=None):
        self._views = {str(view.order_id): view for view in views}
        self._snapshots = [OrderSnapshot.from_view(view) for view in views]
        self._pickups = reconcile(self._snapshots)
        self._debts = debt_by_property(self._snapshots)
        self._properties = property_directory or get_property_directory()
        self._cleanings = cleaning_schedule or get_cleaning_schedule()

    @classmethod
    def load(cls) -> "CourierBoard":
        views = current_domain.repository_for(OrderBoardView)._dao.query.limit(ORDER_SCAN_LIMIT).all().items
        return cls(views)

    # -------------------------------------------------------------------
    # Card building
    # -------------------------------------------------------------------
    def _pickup_for(self, snapshot: OrderSnapshot) -> PickupProjection:
        if snapshot.status in (OrderStatus.PICKING.value, OrderStatus.IN_TRANSIT.value) and snapshot.include_pickup:
            # Owned orders keep showing what the property still owes
            return self._debts.get(snapshot.property_id, PickupProjection.empty(snapshot.property_id))
        return self._pickups.get(snapshot.order_id, PickupProjection.empty(snapshot.property_id))

    def _card(self, snapshot: OrderSnapshot) -> BoardCard:
        view = self._views[snapshot.order_id]
        info = self._properties.lookup(snapshot.property_id)
        slot = self._cleanings.lookup(str(view.cleaning_id)) if view.cleaning_id else None
        cleaning_time = slot.scheduled_time if slot else None

        return BoardCard(
            order_id=snapshot.order_id,
            property_id=snapshot.property_id,
            property_name=info.name if info else "",
            address=info.address if info else "",
            access_info=info.access_info if info else "",
            status=snapshot.status,
            rider_id=snapshot.rider_id,
            urgency=view.urgency or Urgency.NORMAL.value,
            scheduled_date=view.scheduled_date,
            scheduled_time=view.scheduled_time,
            cleaning_time=cleaning_time,
            sort_time=cleaning_time or view.scheduled_time or LATEST_TIME,
            include_pickup=snapshot.include_pickup,
            items=tuple(
                {"item_id": line.item_id, "name": line.name, "quantity": line.quantity} for line in snapshot.items
            ),
            pickup=self._pickup_for(snapshot),
            delivered_at=snapshot.delivered_at,
        )

    def _cards(self, predicate) -> list[BoardCard]:
        return [self._card(snapshot) for snapshot in self._snapshots if predicate(snapshot)]

    # -------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------
    def available_for(self, courier_id: str, day: date | None = None) -> list[BoardCard]:
        day = day or _today()

        def wanted(snapshot):
            scheduled = self._views[snapshot.order_id].scheduled_date
            return is_eligible(snapshot, courier_id) and (scheduled is None or scheduled <= day)

        return sorted(self._cards(wanted), key=_board_sort_key)

    def future_for(self, courier_id: str, day: date | None = None) -> list[BoardCard]:
        day = day or _today()

        def wanted(snapshot):
            scheduled = self._views[snapshot.order_id].scheduled_date
            return is_eligible(snapshot, courier_id) and scheduled is not None and scheduled > day

        return sorted(self._cards(wanted), key=_future_sort_key)

    def picking_for(self, courier_id: str) -> list[BoardCard]:
        return sorted(
            self._cards(lambda s: s.status == OrderStatus.PICKING.value and s.rider_id == str(courier_id)),
            key=_board_sort_key,
        )

    def in_transit_for(self, courier_id: str) -> list[BoardCard]:
        return sorted(
            self._cards(lambda s: s.status == OrderStatus.IN_TRANSIT.value and s.rider_id == str(courier_id)),
            key=_board_sort_key,
        )

    def delivered_today_for(self, courier_id: str, day: date | None = None) -> list[BoardCard]:
        day = day or _today()

        def wanted(snapshot):
            return (
                snapshot.status == OrderStatus.DELIVERED.value
                and snapshot.rider_id == str(courier_id)
                and snapshot.delivered_at is not None
                and snapshot.delivered_at.date() == day
            )

        cards = self._cards(wanted)
        return sorted(cards, key=lambda card: card.delivered_at, reverse=True)

    def board_for(self, courier_id: str, day: date | None = None) -> dict:
        """All sections for the courier, also written to the local cache."""
        day = day or _today()
        board = {
            "courier_id": str(courier_id),
            "day": day.isoformat(),
            "available": [card.to_dict() for card in self.available_for(courier_id, day)],
            "future": [card.to_dict() for card in self.future_for(courier_id, day)],
            "picking": [card.to_dict() for card in self.picking_for(courier_id)],
            "in_transit": [card.to_dict() for card in self.in_transit_for(courier_id)],
            "delivered": [card.to_dict() for card in self.delivered_today_for(courier_id, day)],
        }
        get_local_cache().set(cache_key(courier_id), board)
        logger.debug(
            "Courier board built",
            courier_id=str(courier_id),
            available=len(board["available"]),
            picking=len(board["picking"]),
        )
        return board


def cache_key(courier_id: str) -> str:
    return f"courier-board:{courier_id}"


def cached_board(courier_id: str) -> dict | None:
    """Last board written for the courier, for display before the feed is live."""
    return get_local_cache().get(cache_key(courier_id), None)
