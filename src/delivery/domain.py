"""Delivery bounded context — Linen Delivery and Dirty-Linen Pickup.

Couriers claim orders, carry clean linen to short-term-rental properties and,
on the same visit, collect the dirty linen left by the previous delivery.
Uses CQRS: the Order aggregate holds the authoritative lifecycle and
settlement state, while what is owed at each property is always recomputed
from the delivered orders rather than stored.
"""

from protean.domain import Domain

delivery = Domain(name="delivery")
