"""Order intake, delivery actors, outbox and scan resolution for the LaundryFlow API."""

from . import actors, events, orders, scanning

__all__ = [
    "actors",
    "events",
    "orders",
    "scanning",
]
