"""Tests for Order state machine — valid and invalid transitions."""

import pytest
from delivery.order.order import Order, OrderStatus, is_eligible
from protean.exceptions import ValidationError


def _make_items():
    return [
        {"item_id": "sheet-double", "name": "Lenzuolo matrimoniale", "quantity": 2, "category_id": "biancheria_letto"},
    ]


def _make_order(**overrides):
    kwargs = {"property_id": "prop-001", "items_data": _make_items()}
    kwargs.update(overrides)
    return Order.place(**kwargs)


def _advance_to_picking(order, courier_id="rider-1"):
    order.claim(courier_id)
    return order


def _advance_to_in_transit(order, courier_id="rider-1"):
    _advance_to_picking(order, courier_id)
    order.depart()
    return order


def _advance_to_delivered(order, courier_id="rider-1"):
    _advance_to_in_transit(order, courier_id)
    order.deliver()
    return order


class TestPlacement:
    def test_new_order_is_pending(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.rider_id is None

    def test_include_pickup_defaults_to_true(self):
        order = _make_order()
        assert order.include_pickup is True

    def test_pickup_not_completed_on_creation(self):
        order = _make_order()
        assert order.pickup_completed is False

    def test_urgency_defaults_to_normal(self):
        order = _make_order()
        assert order.urgency == "normal"

    def test_items_are_attached(self):
        order = _make_order()
        assert len(order.items) == 1
        assert order.items[0].item_id == "sheet-double"
        assert order.items[0].quantity == 2


class TestValidTransitions:
    def test_pending_to_picking(self):
        order = _advance_to_picking(_make_order())
        assert order.status == OrderStatus.PICKING.value
        assert order.rider_id == "rider-1"
        assert order.started_at is not None

    def test_pending_to_assigned(self):
        order = _make_order()
        order.assign_to("rider-1")
        assert order.status == OrderStatus.ASSIGNED.value
        assert order.rider_id == "rider-1"

    def test_assigned_to_picking_by_assignee(self):
        order = _make_order()
        order.assign_to("rider-1")
        order.claim("rider-1")
        assert order.status == OrderStatus.PICKING.value

    def test_picking_to_pending_on_release(self):
        order = _advance_to_picking(_make_order())
        order.release()
        assert order.status == OrderStatus.PENDING.value
        assert order.rider_id is None
        assert order.started_at is None

    def test_released_order_can_be_claimed_by_another_courier(self):
        order = _advance_to_picking(_make_order())
        order.release()
        order.claim("rider-2")
        assert order.rider_id == "rider-2"

    def test_picking_to_in_transit(self):
        order = _advance_to_in_transit(_make_order())
        assert order.status == OrderStatus.IN_TRANSIT.value
        assert order.departed_at is not None

    def test_in_transit_to_delivered(self):
        order = _advance_to_delivered(_make_order())
        assert order.status == OrderStatus.DELIVERED.value
        assert order.delivered_at is not None
        assert order.pickup_completed is False


class TestInvalidTransitions:
    def test_cannot_depart_pending_order(self):
        order = _make_order()
        with pytest.raises(ValidationError) as exc:
            order.depart()
        assert "Cannot transition" in str(exc.value)

    def test_cannot_deliver_picking_order(self):
        order = _advance_to_picking(_make_order())
        with pytest.raises(ValidationError):
            order.deliver()

    def test_cannot_release_in_transit_order(self):
        order = _advance_to_in_transit(_make_order())
        with pytest.raises(ValidationError):
            order.release()

    def test_delivered_is_terminal(self):
        order = _advance_to_delivered(_make_order())
        with pytest.raises(ValidationError):
            order.claim("rider-2")
        with pytest.raises(ValidationError):
            order.release()
        with pytest.raises(ValidationError):
            order.depart()
        with pytest.raises(ValidationError):
            order.deliver()

    def test_cannot_assign_picking_order(self):
        order = _advance_to_picking(_make_order())
        with pytest.raises(ValidationError):
            order.assign_to("rider-2")

    def test_other_courier_cannot_claim_assigned_order(self):
        order = _make_order()
        order.assign_to("rider-1")
        with pytest.raises(ValidationError):
            order.claim("rider-2")

    def test_cannot_claim_picking_order_again(self):
        order = _advance_to_picking(_make_order())
        with pytest.raises(ValidationError):
            order.claim("rider-2")


class TestEligibility:
    def test_unowned_pending_order_is_eligible_for_anyone(self):
        order = _make_order()
        assert is_eligible(order, "rider-1")
        assert is_eligible(order, "rider-2")
        assert is_eligible(order)

    def test_assigned_order_is_eligible_only_for_assignee(self):
        order = _make_order()
        order.assign_to("rider-1")
        assert is_eligible(order, "rider-1")
        assert not is_eligible(order, "rider-2")
        assert not is_eligible(order)

    @pytest.mark.parametrize("advance", [_advance_to_picking, _advance_to_in_transit, _advance_to_delivered])
    def test_orders_past_claim_are_not_eligible(self, advance):
        order = advance(_make_order())
        assert not is_eligible(order, "rider-1")
