"""Repository for the Order aggregate.

Every read and write of orders goes through here. Queries that scan the
collection are bounded by ``ORDER_SCAN_LIMIT`` so a single property or
courier lookup never silently truncates at the provider's default page size.
"""

import os

from delivery.domain import delivery
from delivery.order.order import Order, OrderStatus

ORDER_SCAN_LIMIT = int(os.environ.get("ORDER_SCAN_LIMIT", "5000"))


@delivery.repository(part_of=Order)
class OrderRepository:
    def _scan(self, **filters) -> list[Order]:
        return self._dao.query.filter(**filters).limit(ORDER_SCAN_LIMIT).all().items

    def at_property(self, property_id: str) -> list[Order]:
        """All orders placed for a property."""
        return self._scan(property_id=str(property_id))

    def debt_for_property(self, property_id: str) -> list[Order]:
        """Delivered orders at the property whose linen is still owed back."""
        return [
            order
            for order in self.at_property(property_id)
            if order.status == OrderStatus.DELIVERED.value and order.pickup_completed is not True
        ]

    def picking_for(self, courier_id: str) -> list[Order]:
        """Orders currently in the courier's bag."""
        return [
            order
            for order in self._scan(status=OrderStatus.PICKING.value)
            if order.is_owned_by(courier_id)
        ]

    def all_orders(self) -> list[Order]:
        return self._dao.query.limit(ORDER_SCAN_LIMIT).all().items
