"""Delivery domain API package."""

from delivery.api.routes import courier_router, order_router, register_conflict_handler

__all__ = ["order_router", "courier_router", "register_conflict_handler"]
