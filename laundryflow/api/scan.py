from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from .. import schemas
from ..errors import WorkflowError
from ..services import scanning
from .dependencies import Store
from .errors import to_http_exception

router = APIRouter(prefix="/scan", tags=["Scanning"])


@router.post("", response_model=schemas.ScanResultOut)
def resolve_scan(payload: schemas.ScanRequest, store: Store):
    try:
        result = scanning.resolve_scanned_code(payload.raw)
        order = scanning.lookup_order(store, result)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No order matches {payload.raw!r}")
    return schemas.ScanResultOut(
        kind=result.kind.value,
        raw=result.raw,
        order_id=result.order_id,
        ticket_number=result.ticket_number,
        tag_number=result.tag_number,
        order=order,
    )
