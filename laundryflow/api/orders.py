from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from .. import models, schemas
from ..errors import WorkflowError
from ..repositories.base import OrderQuery
from ..services import orders as order_service
from .dependencies import DbSession, Store
from .errors import to_http_exception

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=schemas.OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(payload: schemas.OrderCreate, store: Store):
    try:
        return store.create_order(payload)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("", response_model=List[schemas.OrderOut])
def list_orders(
    store: Store,
    status_filter: Optional[List[models.OrderStatus]] = Query(None, alias="status"),
    limit: Optional[int] = Query(None, ge=1, le=500),
):
    query = OrderQuery(statuses=frozenset(status_filter) if status_filter else None, limit=limit)
    try:
        return store.fetch_orders(query)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/search", response_model=List[schemas.OrderOut])
def search_orders(db: DbSession, q: str = Query(..., min_length=1)):
    orders = order_service.search_orders(db, q)
    return [schemas.OrderOut.model_validate(order, from_attributes=True) for order in orders]


@router.get("/{order_id}", response_model=schemas.OrderOut)
def get_order(order_id: str, store: Store):
    try:
        return store.fetch_order_by_id(order_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.patch("/{order_id}", response_model=schemas.OrderOut)
def patch_order(order_id: str, payload: schemas.OrderFieldsUpdate, store: Store):
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    try:
        return store.update_order_fields(order_id, fields)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{order_id}/transitions", response_model=List[schemas.OrderTransitionOut])
def list_order_transitions(order_id: str, store: Store):
    try:
        store.fetch_order_by_id(order_id)
        return store.list_transitions(order_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
