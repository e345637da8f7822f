"""Order ownership — who holds an order, and what a lost race looks like.

Two couriers may try to take the same order at once. The claim handler
re-checks ownership after loading the order, and the repository's version
check rejects a write made from a stale copy. The loser gets
``OwnershipConflict`` (HTTP 409).
"""


class OwnershipConflict(Exception):
    """Raised when an order is already owned by another courier."""

    def __init__(self, order_id: str, owner_id: str | None, requested_by: str):
        self.order_id = order_id
        self.owner_id = owner_id
        self.requested_by = requested_by
        super().__init__(f"Order {order_id} is already owned by courier {owner_id}")
