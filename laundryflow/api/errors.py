from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import (
    GuardRejection,
    OrderNotFound,
    RoleNotPermitted,
    StaleStateError,
    TransitionNotAllowed,
    TransportError,
    ValidationError,
    WorkflowError,
)


def to_http_exception(exc: WorkflowError) -> HTTPException:
    if isinstance(exc, OrderNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, RoleNotPermitted):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"reason": exc.reason, "message": str(exc)},
        )
    if isinstance(exc, StaleStateError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "reason": exc.reason,
                "message": str(exc),
                "expected_status": exc.expected_status,
                "actual_status": exc.actual_status,
            },
        )
    if isinstance(exc, GuardRejection):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"reason": exc.reason, "soft": exc.soft, "message": str(exc)},
        )
    if isinstance(exc, TransitionNotAllowed):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"reason": exc.reason, "soft": False, "message": str(exc)},
        )
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"reason": "validation-error", "soft": False, "message": str(exc)},
        )
    if isinstance(exc, TransportError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
