"""Shared BDD fixtures and step definitions for the Delivery domain."""

import json

import pytest
from delivery.order.creation import PlaceOrder
from delivery.order.lifecycle import claim_order, deliver_order, depart_courier
from delivery.order.order import Order
from delivery.reconciliation.refresh import refresh_pickup
from protean import current_domain
from pytest_bdd import given, parsers, then

_CATALOGUE = {
    "sheet": {"item_id": "sheet", "name": "Lenzuolo matrimoniale", "category_id": "biancheria_letto"},
    "towel": {"item_id": "towel", "name": "Asciugamano", "category_id": "biancheria_bagno"},
    "pillowcase": {"item_id": "pillowcase", "name": "Federa", "category_id": "biancheria_letto"},
}
_DEFAULT_ITEMS = [{**_CATALOGUE["sheet"], "quantity": 2}]


@pytest.fixture()
def orders():
    """Scenario order names mapped to their ids."""
    return {}


@pytest.fixture()
def error():
    """Container for captured errors."""
    return {"exc": None}


def _place(property_id, items, include_pickup=True):
    return current_domain.process(
        PlaceOrder(property_id=property_id, items=json.dumps(items), include_pickup=include_pickup),
        asynchronous=False,
    )


def _deliver_now(order_id):
    claim_order(order_id, "rider-previous")
    depart_courier("rider-previous")
    deliver_order(order_id)


def get_order(orders, name):
    return current_domain.repository_for(Order).get(orders[name])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a pending order "{name}" at property "{property_id}"'))
def pending_order(orders, name, property_id):
    orders[name] = _place(property_id, _DEFAULT_ITEMS)


@given(parsers.cfparse('a pending order "{name}" at property "{property_id}" without pickup'))
def pending_order_without_pickup(orders, name, property_id):
    orders[name] = _place(property_id, _DEFAULT_ITEMS, include_pickup=False)


@given(parsers.cfparse('a delivered order "{name}" at property "{property_id}" with {quantity:d} "{item}"'))
def delivered_order(orders, name, property_id, quantity, item):
    orders[name] = _place(property_id, [{**_CATALOGUE[item], "quantity": quantity}])
    _deliver_now(orders[name])


@given(parsers.cfparse('a delivered order "{name}" at property "{property_id}" with {quantity:d} "kit_cortesia" shampoo'))
def delivered_kit_order(orders, name, property_id, quantity):
    items = [{"item_id": "kit-shampoo", "name": "shampoo", "category_id": "kit_cortesia", "quantity": quantity}]
    orders[name] = _place(property_id, items)
    _deliver_now(orders[name])


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('order "{name}" is "{status}" and owned by "{courier_id}"'))
def order_status_and_owner(orders, name, status, courier_id):
    order = get_order(orders, name)
    assert order.status == status
    assert order.rider_id == courier_id


@then(parsers.cfparse('order "{name}" is "{status}" without a courier'))
def order_status_unowned(orders, name, status):
    order = get_order(orders, name)
    assert order.status == status
    assert order.rider_id is None


@then(parsers.cfparse('order "{name}" owes its linen back'))
def order_owes_linen(orders, name):
    order = get_order(orders, name)
    assert order.status == "DELIVERED"
    assert order.pickup_completed is False


@then(parsers.cfparse('order "{name}" should collect {first_qty:d} "{first_item}" and {second_qty:d} "{second_item}"'))
def order_should_collect(orders, name, first_qty, first_item, second_qty, second_item):
    projection = refresh_pickup(orders[name])
    assert {line.item_id: line.quantity for line in projection.items} == {
        first_item: first_qty,
        second_item: second_qty,
    }


@then(parsers.cfparse('order "{name}" should collect from "{first}" and "{second}"'))
def order_should_collect_from(orders, name, first, second):
    projection = refresh_pickup(orders[name])
    assert set(projection.from_orders) == {orders[first], orders[second]}


@then(parsers.cfparse('order "{name}" should collect nothing'))
def order_should_collect_nothing(orders, name):
    projection = refresh_pickup(orders[name])
    assert projection.is_empty
    assert projection.from_orders == ()
