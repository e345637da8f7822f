"""Fresh-read pickup recalculation for a single order.

Used before a claim preview and, mandatorily, before settlement: the board's
projection may be a tick behind, so the debt set is re-read from the order
repository at call time.
"""

import structlog
from protean.utils.globals import current_domain

from delivery.order.order import Order
from delivery.reconciliation.engine import OrderSnapshot, PickupProjection, debt_set, merge_debt

logger = structlog.get_logger(__name__)


def refresh_pickup(order_id: str) -> PickupProjection:
    """Recompute what ``order_id`` should collect from current storage.

    Raises ``ObjectNotFoundError`` for an unknown order.
    """
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    property_id = str(order.property_id)

    if order.include_pickup is False:
        return PickupProjection.empty(property_id)

    debt_orders = [
        OrderSnapshot.from_order(candidate)
        for candidate in repo.debt_for_property(property_id)
        if str(candidate.id) != str(order.id)
    ]
    projection = merge_debt(property_id, debt_set(debt_orders))

    logger.debug(
        "Pickup recalculated",
        order_id=str(order_id),
        property_id=property_id,
        items=len(projection.items),
        from_orders=list(projection.from_orders),
    )
    return projection
