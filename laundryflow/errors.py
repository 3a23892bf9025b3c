"""Failure taxonomy shared by the workflow engine, the stores and the API."""

from __future__ import annotations

from typing import Optional


class WorkflowError(Exception):
    """Base class for every error the engine raises on purpose."""


class OrderNotFound(WorkflowError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class ValidationError(WorkflowError):
    """Malformed caller input, e.g. an unknown stage or a bad rack code."""


class TransitionNotAllowed(WorkflowError):
    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(f"No transition from {from_status!r} to {to_status!r}")
        self.from_status = from_status
        self.to_status = to_status
        self.reason = "transition-not-allowed"


class RoleNotPermitted(WorkflowError):
    def __init__(self, role: str, from_status: str, to_status: str) -> None:
        super().__init__(f"Role {role!r} may not move orders from {from_status!r} to {to_status!r}")
        self.role = role
        self.reason = "role-not-permitted"


class GuardRejection(WorkflowError):
    """A business rule blocked the transition.

    ``soft`` rejections are warnings (unpaid COD) that the caller may
    override by resubmitting with ``acknowledge_warnings`` set.
    """

    def __init__(self, reason: str, *, soft: bool = False, detail: Optional[str] = None) -> None:
        super().__init__(detail or reason)
        self.reason = reason
        self.soft = soft


class StaleStateError(WorkflowError):
    """The stored status moved away from the caller's expected pre-state."""

    def __init__(self, order_id: str, expected_status: str, actual_status: Optional[str] = None) -> None:
        message = f"Order {order_id} is no longer in status {expected_status!r}"
        if actual_status is not None:
            message += f" (now {actual_status!r})"
        super().__init__(message)
        self.order_id = order_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        self.reason = "stale-state"


class TransportError(WorkflowError):
    """The order store could not be reached or failed mid-operation."""


class NotifierFault(WorkflowError):
    """A polling tick or a notification side effect failed."""
