"""Pickup reconciliation — pure derivation of what each order should collect.

A property owes back the linen of every delivered order whose pickup is not
yet completed (its debt set). The linen is merged across the whole debt set
and projected onto the property's eligible orders. Nothing here reads or
writes storage: callers hand in snapshots and get projections back, so the
same computation serves the live board, the pre-claim refresh and the
settlement re-read.
"""

import json
from collections import OrderedDict, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from delivery.order.classification import is_pickup_eligible
from delivery.order.order import OrderStatus, is_eligible


@dataclass(frozen=True)
class LineSnapshot:
    item_id: str
    name: str
    quantity: int
    category_id: str | None = None
    item_type: str | None = None

    @classmethod
    def from_data(cls, data) -> "LineSnapshot":
        if isinstance(data, dict):
            get = data.get
        else:

            def get(name, default=None):
                return getattr(data, name, default)

        return cls(
            item_id=str(get("item_id") or get("id") or ""),
            name=str(get("name") or ""),
            quantity=int(get("quantity") or 0),
            category_id=get("category_id") or get("categoryId"),
            item_type=get("item_type") or get("type"),
        )

    @property
    def key(self) -> str:
        return self.item_id or self.name


@dataclass(frozen=True)
class OrderSnapshot:
    """The slice of an order that reconciliation looks at."""

    order_id: str
    property_id: str
    status: str
    rider_id: str | None = None
    include_pickup: bool = True
    pickup_completed: bool = False
    items: tuple[LineSnapshot, ...] = ()
    created_at: datetime | None = None
    delivered_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderSnapshot":
        return cls(
            order_id=str(order.id),
            property_id=str(order.property_id),
            status=order.status,
            rider_id=str(order.rider_id) if order.rider_id else None,
            include_pickup=order.include_pickup is not False,
            pickup_completed=order.pickup_completed is True,
            items=tuple(LineSnapshot.from_data(item) for item in order.items),
            created_at=order.created_at,
            delivered_at=order.delivered_at,
        )

    @classmethod
    def from_view(cls, view) -> "OrderSnapshot":
        items_data = json.loads(view.items) if view.items else []
        return cls(
            order_id=str(view.order_id),
            property_id=str(view.property_id),
            status=view.status,
            rider_id=str(view.rider_id) if view.rider_id else None,
            include_pickup=view.include_pickup is not False,
            pickup_completed=view.pickup_completed is True,
            items=tuple(LineSnapshot.from_data(item) for item in items_data),
            created_at=view.created_at,
            delivered_at=view.delivered_at,
        )

    @property
    def owes_pickup(self) -> bool:
        return self.status == OrderStatus.DELIVERED.value and not self.pickup_completed


@dataclass(frozen=True)
class PickupLine:
    item_id: str
    name: str
    quantity: int
    category_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "category_id": self.category_id,
        }


@dataclass(frozen=True)
class PickupProjection:
    """Dirty linen an order should collect, and the orders it comes from.

    Read-only and recomputed on demand; never persisted on the order.
    """

    property_id: str
    items: tuple[PickupLine, ...] = field(default_factory=tuple)
    from_orders: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls, property_id: str = "") -> "PickupProjection":
        return cls(property_id=property_id)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)

    def to_dict(self) -> dict:
        return {
            "property_id": self.property_id,
            "pickup_items": [line.to_dict() for line in self.items],
            "pickup_from_orders": list(self.from_orders),
        }


def _debt_sort_key(snapshot: OrderSnapshot):
    moment = snapshot.delivered_at or snapshot.created_at
    return (moment is None, moment.isoformat() if moment else "", snapshot.order_id)


def debt_set(snapshots: Iterable[OrderSnapshot]) -> list[OrderSnapshot]:
    """Delivered orders still owing their linen, oldest delivery first."""
    return sorted((s for s in snapshots if s.owes_pickup), key=_debt_sort_key)


def merge_debt(property_id: str, debt_orders: Iterable[OrderSnapshot]) -> PickupProjection:
    """Merge the pickup-eligible lines of ``debt_orders`` by item identity.

    Quantities of the same item are summed across orders; lines that end up
    with nothing to collect are dropped. Every debt order is listed as a
    source, even one without linen, so settlement retires it too.
    """
    merged: OrderedDict[str, dict] = OrderedDict()
    sources: list[str] = []

    for snapshot in debt_orders:
        if snapshot.order_id not in sources:
            sources.append(snapshot.order_id)
        for line in snapshot.items:
            if not line.key or not is_pickup_eligible(line):
                continue
            entry = merged.get(line.key)
            if entry is None:
                merged[line.key] = {
                    "item_id": line.item_id or line.name,
                    "name": line.name,
                    "quantity": line.quantity,
                    "category_id": line.category_id,
                }
            else:
                entry["quantity"] += line.quantity

    lines = tuple(PickupLine(**entry) for entry in merged.values() if entry["quantity"] > 0)
    return PickupProjection(property_id=str(property_id), items=lines, from_orders=tuple(sources))


def debt_by_property(snapshots: Iterable[OrderSnapshot]) -> dict[str, PickupProjection]:
    grouped: dict[str, list[OrderSnapshot]] = defaultdict(list)
    for snapshot in debt_set(snapshots):
        grouped[snapshot.property_id].append(snapshot)
    return {property_id: merge_debt(property_id, orders) for property_id, orders in grouped.items()}


def reconcile(snapshots: Iterable[OrderSnapshot]) -> dict[str, PickupProjection]:
    """Project each property's debt onto its eligible orders.

    Returns a projection for every order in ``snapshots``. Orders that are
    not waiting for a courier, or that do not include a pickup, get an empty
    one; their property's debt stays for the next eligible order.
    """
    snapshots = list(snapshots)
    debts = debt_by_property(snapshots)

    projections: dict[str, PickupProjection] = {}
    for snapshot in snapshots:
        if snapshot.include_pickup and is_eligible(snapshot, snapshot.rider_id):
            projections[snapshot.order_id] = debts.get(
                snapshot.property_id, PickupProjection.empty(snapshot.property_id)
            )
        else:
            projections[snapshot.order_id] = PickupProjection.empty(snapshot.property_id)
    return projections
