from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from .. import schemas
from ..errors import WorkflowError
from ..services import actors as actor_service
from .dependencies import DbSession, Store
from .errors import to_http_exception

router = APIRouter(prefix="/delivery-actors", tags=["Delivery"])


@router.get("", response_model=List[schemas.DeliveryActorOut])
def list_delivery_actors(store: Store, active_only: bool = Query(True)):
    try:
        return store.list_delivery_actors(active_only=active_only)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("", response_model=schemas.DeliveryActorOut, status_code=status.HTTP_201_CREATED)
def create_delivery_actor(payload: schemas.DeliveryActorCreate, db: DbSession):
    try:
        actor = actor_service.create_delivery_actor(db, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.DeliveryActorOut.model_validate(actor, from_attributes=True)
