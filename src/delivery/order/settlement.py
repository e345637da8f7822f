"""Pickup settlement — retiring pickup debt when a courier collects dirty linen.

Settlement runs when an order is delivered together with a pickup:

1. The expected pickup is recalculated from a fresh read (the board's copy
   may be stale, and an order delivered in between must not be lost).
2. The delivering order is written: DELIVERED, with the courier's per-item
   checks, note and issue flag. Its own linen becomes the next debt.
3. Every source order is marked collected, one independent write each.

Step 3 is not atomic. A failed write is logged and left alone: the source
stays in its property's debt set and is picked up again by the next
settlement, or by ``retry_settlement``. Each write carries the key
``<delivering order>:<source order>`` so repeating it changes nothing.

A report that disagrees with the expectation never blocks settlement; the
discrepancy is recorded on the delivering order and logged.
"""

import json
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from delivery.domain import delivery
from delivery.order.order import Order, PickupCheckStatus
from delivery.reconciliation.engine import PickupProjection
from delivery.reconciliation.refresh import refresh_pickup

logger = structlog.get_logger(__name__)


@delivery.command(part_of="Order")
class RecordPickupDelivery:
    """Deliver an order and record the pickup performed on the same visit."""

    order_id = Identifier(required=True)
    pickup_checks = Text(required=True)  # JSON list of check dicts
    pickup_note = String(max_length=1000)
    pickup_from_orders = Text()  # JSON list of source order ids


@delivery.command(part_of="Order")
class MarkPickupCollected:
    """Retire the pickup debt of one delivered order."""

    order_id = Identifier(required=True)
    collected_in_order_id = Identifier(required=True)
    settlement_key = String(required=True, max_length=255)


@delivery.command_handler(part_of=Order)
class SettlementHandler:
    @handle(RecordPickupDelivery)
    def record_pickup_delivery(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        checks = json.loads(command.pickup_checks) if command.pickup_checks else []
        sources = json.loads(command.pickup_from_orders) if command.pickup_from_orders else []
        order.deliver(
            pickup_checks=checks,
            pickup_note=command.pickup_note,
            pickup_from_orders=sources,
        )
        repo.add(order)

    @handle(MarkPickupCollected)
    def mark_pickup_collected(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.mark_pickup_collected(command.collected_in_order_id, command.settlement_key)
        if not changed:
            if order.pickup_settlement_key != command.settlement_key:
                logger.warning(
                    "Pickup already collected by another order",
                    order_id=str(order.id),
                    collected_in_order_id=str(order.pickup_completed_in_order_id),
                    attempted_by=str(command.collected_in_order_id),
                )
            return False
        repo.add(order)
        return True


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PickupReport:
    """What the courier reports for the pickup.

    ``checks`` holds one dict per expected item (``item_id``, ``status``,
    optional ``actual_quantity`` and ``note``). When it is None every
    expected item is taken as collected in full.
    """

    checks: tuple[dict, ...] | None = None
    note: str = ""


@dataclass
class SettlementResult:
    order_id: str
    expected: PickupProjection
    settled: list[str] = field(default_factory=list)
    already_settled: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    has_issues: bool = False

    @property
    def complete(self) -> bool:
        return not self.failed


def settlement_key(delivering_order_id: str, source_order_id: str) -> str:
    return f"{delivering_order_id}:{source_order_id}"


def _checks_for(report: PickupReport, expected: PickupProjection) -> list[dict]:
    if report.checks is not None:
        return [dict(check) for check in report.checks]
    return [
        {"item_id": line.item_id, "status": PickupCheckStatus.OK.value, "actual_quantity": line.quantity}
        for line in expected.items
    ]


def _collect_sources(delivering_order_id: str, sources, result: SettlementResult) -> None:
    for source_id in sources:
        try:
            changed = current_domain.process(
                MarkPickupCollected(
                    order_id=source_id,
                    collected_in_order_id=delivering_order_id,
                    settlement_key=settlement_key(delivering_order_id, source_id),
                ),
                asynchronous=False,
            )
        except Exception as exc:
            result.failed.append(source_id)
            logger.warning(
                "Pickup settlement write failed",
                order_id=delivering_order_id,
                source_order_id=source_id,
                error=str(exc),
            )
            continue

        if changed:
            result.settled.append(source_id)
        else:
            result.already_settled.append(source_id)


def settle_pickup(order_id: str, report: PickupReport | None = None) -> SettlementResult:
    """Deliver ``order_id`` with a pickup and retire the debt it collected."""
    report = report or PickupReport()
    expected = refresh_pickup(order_id)
    checks = _checks_for(report, expected)

    current_domain.process(
        RecordPickupDelivery(
            order_id=order_id,
            pickup_checks=json.dumps(checks),
            pickup_note=report.note,
            pickup_from_orders=json.dumps(list(expected.from_orders)),
        ),
        asynchronous=False,
    )

    result = SettlementResult(order_id=str(order_id), expected=expected)
    result.has_issues = any(
        (check.get("status") or PickupCheckStatus.OK.value) != PickupCheckStatus.OK.value for check in checks
    )
    if result.has_issues:
        logger.warning(
            "Pickup report differs from expectation",
            order_id=str(order_id),
            expected_items=[line.item_id for line in expected.items],
            checks=checks,
            note=report.note,
        )

    _collect_sources(str(order_id), expected.from_orders, result)

    logger.info(
        "Pickup settled",
        order_id=str(order_id),
        settled=result.settled,
        already_settled=result.already_settled,
        failed=result.failed,
    )
    return result


def retry_settlement(order_id: str) -> SettlementResult:
    """Replay the collection writes of an already delivered order.

    Sources that were settled the first time are no-ops; only the writes
    that failed take effect.
    """
    order = current_domain.repository_for(Order).get(order_id)
    result = SettlementResult(
        order_id=str(order_id),
        expected=PickupProjection.empty(str(order.property_id)),
        has_issues=bool(order.pickup_has_issues),
    )
    _collect_sources(str(order_id), order.settled_sources(), result)
    logger.info(
        "Pickup settlement retried",
        order_id=str(order_id),
        settled=result.settled,
        failed=result.failed,
    )
    return result
