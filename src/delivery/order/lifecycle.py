"""Order lifecycle — claim, release, depart and deliver.

Commands and handler for the courier-facing transitions, plus the service
functions the API calls. Ownership is re-checked inside the handler, and a
claim that loses a concurrent write is replayed against a fresh read.
"""

from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.order.order import Order, OrderStatus
from delivery.order.ownership import OwnershipConflict

logger = structlog.get_logger(__name__)


@delivery.command(part_of="Order")
class ClaimOrder:
    """Take an eligible order into the courier's bag."""

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)


@delivery.command(part_of="Order")
class ReleaseOrder:
    """Put a picked order back in the pool."""

    order_id = Identifier(required=True)
    courier_id = Identifier()


@delivery.command(part_of="Order")
class DepartOrder:
    """Move one picked order to in-transit."""

    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)


@delivery.command(part_of="Order")
class DeliverOrder:
    """Record a delivery where no pickup took place."""

    order_id = Identifier(required=True)


def _check_owner(order: Order, courier_id: str) -> None:
    if order.rider_id and not order.is_owned_by(courier_id):
        raise OwnershipConflict(str(order.id), str(order.rider_id), str(courier_id))


@delivery.command_handler(part_of=Order)
class LifecycleHandler:
    @handle(ClaimOrder)
    def claim_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.status in (OrderStatus.ASSIGNED.value, OrderStatus.PICKING.value):
            _check_owner(order, command.courier_id)
        if order.status == OrderStatus.PICKING.value:
            # Already in this courier's bag
            return str(order.id)
        order.claim(command.courier_id)
        repo.add(order)
        return str(order.id)

    @handle(ReleaseOrder)
    def release_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.courier_id:
            _check_owner(order, command.courier_id)
        order.release()
        repo.add(order)

    @handle(DepartOrder)
    def depart_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        _check_owner(order, command.courier_id)
        order.depart()
        repo.add(order)

    @handle(DeliverOrder)
    def deliver_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.deliver()
        repo.add(order)


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------
@dataclass
class DepartureResult:
    courier_id: str
    departed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def claim_order(order_id: str, courier_id: str) -> str:
    """Claim ``order_id`` for ``courier_id``.

    A write from a stale copy is rejected by the repository's version check;
    the claim is then replayed once against a fresh read, so the loser sees
    the real owner as an ``OwnershipConflict``.
    """
    try:
        try:
            return current_domain.process(ClaimOrder(order_id=order_id, courier_id=courier_id), asynchronous=False)
        except ExpectedVersionError:
            logger.info("Stale claim, re-reading order", order_id=str(order_id), courier_id=str(courier_id))
            return current_domain.process(ClaimOrder(order_id=order_id, courier_id=courier_id), asynchronous=False)
    except OwnershipConflict as exc:
        logger.info(
            "Claim lost to another courier",
            order_id=str(order_id),
            courier_id=str(courier_id),
            owner_id=exc.owner_id,
        )
        raise


def release_order(order_id: str, courier_id: str | None = None) -> None:
    current_domain.process(
        ReleaseOrder(order_id=order_id, courier_id=courier_id),
        asynchronous=False,
    )


def depart_courier(courier_id: str) -> DepartureResult:
    """Send every order in the courier's bag on its way.

    Each order is written independently; a failure on one is logged and the
    rest still depart.
    """
    result = DepartureResult(courier_id=str(courier_id))
    picking = current_domain.repository_for(Order).picking_for(courier_id)
    if not picking:
        logger.info("Nothing to depart", courier_id=str(courier_id))
        return result

    for order in picking:
        try:
            current_domain.process(
                DepartOrder(order_id=str(order.id), courier_id=courier_id),
                asynchronous=False,
            )
            result.departed.append(str(order.id))
        except Exception as exc:
            result.failed.append(str(order.id))
            logger.warning(
                "Failed to depart order",
                order_id=str(order.id),
                courier_id=str(courier_id),
                error=str(exc),
            )

    logger.info(
        "Courier departed",
        courier_id=str(courier_id),
        departed=len(result.departed),
        failed=len(result.failed),
    )
    return result


def deliver_order(order_id: str) -> None:
    current_domain.process(DeliverOrder(order_id=order_id), asynchronous=False)
