from .base import AssignmentFilter, OrderQuery, OrderStore, RackFilter, TransitionRecord
from .in_memory import InMemoryOrderStore
from .sql import SqlOrderStore

__all__ = [
    "AssignmentFilter",
    "InMemoryOrderStore",
    "OrderQuery",
    "OrderStore",
    "RackFilter",
    "SqlOrderStore",
    "TransitionRecord",
]
