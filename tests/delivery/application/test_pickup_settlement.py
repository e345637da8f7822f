"""Application tests for pickup settlement."""

import json

import pytest
from delivery.order import settlement
from delivery.order.creation import PlaceOrder
from delivery.order.lifecycle import claim_order, deliver_order, depart_courier
from delivery.order.order import Order, OrderStatus
from delivery.order.settlement import PickupReport, retry_settlement, settle_pickup
from delivery.reconciliation.refresh import refresh_pickup
from protean import current_domain
from protean.exceptions import ExpectedVersionError, ValidationError

SHEETS = {"item_id": "sheet", "name": "Lenzuolo", "quantity": 4, "category_id": "biancheria_letto"}
TOWELS = {"item_id": "towel", "name": "Asciugamano", "quantity": 2, "category_id": "biancheria_bagno"}
KIT = {"item_id": "kit", "name": "Kit cortesia", "quantity": 1, "category_id": "kit_cortesia"}


def _place(*items, property_id="prop-s", include_pickup=True):
    return current_domain.process(
        PlaceOrder(property_id=property_id, items=json.dumps(list(items)), include_pickup=include_pickup),
        asynchronous=False,
    )


def _deliver(order_id, courier_id="rider-old"):
    claim_order(order_id, courier_id)
    depart_courier(courier_id)
    deliver_order(order_id)


def _delivered(*items, property_id="prop-s"):
    order_id = _place(*items, property_id=property_id)
    _deliver(order_id)
    return order_id


def _on_the_way(order_id, courier_id="rider-new"):
    claim_order(order_id, courier_id)
    depart_courier(courier_id)


def _get(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestSettlePickup:
    def test_delivery_with_pickup_settles_every_source(self):
        o1 = _delivered(SHEETS)
        o2 = _delivered(TOWELS)
        o3 = _place(SHEETS, TOWELS)

        preview = refresh_pickup(o3)
        assert set(preview.from_orders) == {o1, o2}

        _on_the_way(o3)
        result = settle_pickup(o3)

        assert sorted(result.settled) == sorted([o1, o2])
        assert result.failed == []
        for source in (o1, o2):
            order = _get(source)
            assert order.pickup_completed is True
            assert order.pickup_completed_in_order_id == o3
            assert order.pickup_settlement_key == f"{o3}:{source}"

        delivering = _get(o3)
        assert delivering.status == OrderStatus.DELIVERED.value
        assert delivering.pickup_completed is False
        assert sorted(delivering.settled_sources()) == sorted([o1, o2])

    def test_delivering_order_becomes_next_debt(self):
        _delivered(SHEETS)
        o3 = _place(TOWELS)
        _on_the_way(o3)
        settle_pickup(o3)

        o4 = _place(SHEETS)
        assert refresh_pickup(o4).from_orders == (o3,)

    def test_order_delivered_after_preview_is_not_lost(self):
        o1 = _delivered(SHEETS)
        o3 = _place(SHEETS)
        preview = refresh_pickup(o3)
        assert preview.from_orders == (o1,)

        o4 = _delivered(TOWELS)
        _on_the_way(o3)
        result = settle_pickup(o3)

        assert set(result.settled) == {o1, o4}
        assert {line.item_id for line in result.expected.items} == {"sheet", "towel"}

    def test_order_delivered_during_settlement_stays_owed(self, monkeypatch):
        o1 = _delivered(SHEETS)
        o3 = _place(SHEETS)
        _on_the_way(o3)
        late = {}
        original_refresh = settlement.refresh_pickup

        def refresh_then_deliver(order_id):
            projection = original_refresh(order_id)
            late["order_id"] = _delivered(TOWELS)
            return projection

        monkeypatch.setattr(settlement, "refresh_pickup", refresh_then_deliver)
        result = settle_pickup(o3)
        monkeypatch.setattr(settlement, "refresh_pickup", original_refresh)

        o4 = late["order_id"]
        assert result.settled == [o1]
        assert _get(o4).pickup_completed is False

        o5 = _place(SHEETS)
        assert set(refresh_pickup(o5).from_orders) == {o3, o4}

    def test_default_report_marks_all_expected_items_ok(self):
        _delivered(SHEETS, TOWELS)
        o3 = _place(SHEETS)
        _on_the_way(o3)
        result = settle_pickup(o3)
        delivering = _get(o3)
        assert result.has_issues is False
        assert {check.item_id for check in delivering.pickup_checks} == {"sheet", "towel"}
        assert all(check.status == "ok" for check in delivering.pickup_checks)

    def test_discrepancies_are_recorded_but_do_not_block(self):
        o1 = _delivered(SHEETS)
        o3 = _place(SHEETS)
        _on_the_way(o3)
        report = PickupReport(
            checks=({"item_id": "sheet", "status": "missing", "actual_quantity": 0, "note": "No bag"},),
            note="Host had not left linen out",
        )

        result = settle_pickup(o3, report)

        assert result.has_issues is True
        assert result.settled == [o1]
        delivering = _get(o3)
        assert delivering.pickup_has_issues is True
        assert delivering.pickup_note == "Host had not left linen out"

    def test_source_without_linen_is_still_retired(self):
        o1 = _delivered(KIT)
        o3 = _place(SHEETS)
        _on_the_way(o3)
        result = settle_pickup(o3)
        assert result.expected.is_empty
        assert result.settled == [o1]
        assert _get(o1).pickup_completed is True

    def test_order_without_pickup_cannot_settle(self):
        o1 = _delivered(SHEETS)
        o3 = _place(SHEETS, include_pickup=False)
        _on_the_way(o3)
        with pytest.raises(ValidationError):
            settle_pickup(o3)
        assert _get(o1).pickup_completed is False

    def test_other_properties_are_untouched(self):
        elsewhere = _delivered(SHEETS, property_id="prop-other")
        _delivered(SHEETS)
        o3 = _place(SHEETS)
        _on_the_way(o3)
        settle_pickup(o3)
        assert _get(elsewhere).pickup_completed is False


class TestSettlementFailures:
    def test_failed_write_is_logged_and_others_proceed(self, monkeypatch):
        o1 = _delivered(SHEETS)
        o2 = _delivered(TOWELS)
        o3 = _place(SHEETS)
        _on_the_way(o3)

        original = Order.mark_pickup_collected

        def flaky(self, collected_in_order_id, settlement_key=None):
            if str(self.id) == o2:
                raise ConnectionError("store unavailable")
            return original(self, collected_in_order_id, settlement_key)

        monkeypatch.setattr(Order, "mark_pickup_collected", flaky)
        result = settle_pickup(o3)

        assert result.settled == [o1]
        assert result.failed == [o2]
        assert not result.complete
        assert _get(o3).status == OrderStatus.DELIVERED.value
        assert _get(o2).pickup_completed is False

    def test_concurrent_write_on_one_source_does_not_block_the_rest(self, monkeypatch):
        o1 = _delivered(SHEETS)
        o2 = _delivered(TOWELS)
        o3 = _place(SHEETS)
        _on_the_way(o3)

        original = Order.mark_pickup_collected

        def stale(self, collected_in_order_id, settlement_key=None):
            if str(self.id) == o1:
                raise ExpectedVersionError(f"Wrong expected version for order {o1}")
            return original(self, collected_in_order_id, settlement_key)

        monkeypatch.setattr(Order, "mark_pickup_collected", stale)
        result = settle_pickup(o3)

        assert result.failed == [o1]
        assert result.settled == [o2]
        assert _get(o3).status == OrderStatus.DELIVERED.value
        assert _get(o2).pickup_completed is True
        assert _get(o1).pickup_completed is False

    def test_failed_source_heals_on_next_settlement(self, monkeypatch):
        o1 = _delivered(SHEETS)
        o3 = _place(SHEETS)
        _on_the_way(o3)

        original = Order.mark_pickup_collected

        def always_fails(self, collected_in_order_id, settlement_key=None):
            raise ConnectionError("store unavailable")

        monkeypatch.setattr(Order, "mark_pickup_collected", always_fails)
        settle_pickup(o3)
        monkeypatch.setattr(Order, "mark_pickup_collected", original)

        o5 = _place(SHEETS)
        assert set(refresh_pickup(o5).from_orders) == {o1, o3}

        _on_the_way(o5)
        result = settle_pickup(o5)
        assert set(result.settled) == {o1, o3}
        assert _get(o1).pickup_completed_in_order_id == o5

    def test_retry_only_applies_missing_writes(self, monkeypatch):
        o1 = _delivered(SHEETS)
        o2 = _delivered(TOWELS)
        o3 = _place(SHEETS)
        _on_the_way(o3)

        original = Order.mark_pickup_collected

        def flaky(self, collected_in_order_id, settlement_key=None):
            if str(self.id) == o2:
                raise ConnectionError("store unavailable")
            return original(self, collected_in_order_id, settlement_key)

        monkeypatch.setattr(Order, "mark_pickup_collected", flaky)
        settle_pickup(o3)
        monkeypatch.setattr(Order, "mark_pickup_collected", original)

        first_at = _get(o1).pickup_completed_at
        result = retry_settlement(o3)

        assert result.settled == [o2]
        assert result.already_settled == [o1]
        assert _get(o2).pickup_completed_in_order_id == o3
        assert _get(o1).pickup_completed_at == first_at

    def test_settlement_never_reverts_completed_pickup(self):
        o1 = _delivered(SHEETS)
        o3 = _place(SHEETS)
        _on_the_way(o3)
        settle_pickup(o3)

        retry_settlement(o3)
        retry_settlement(o3)

        order = _get(o1)
        assert order.pickup_completed is True
        assert order.pickup_completed_in_order_id == o3
