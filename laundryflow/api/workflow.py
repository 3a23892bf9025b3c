from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Query

from .. import models, schemas
from ..errors import WorkflowError
from ..workflow import registry, stages
from . import serializers
from .dependencies import Engine
from .errors import to_http_exception

router = APIRouter(prefix="/workflow", tags=["Workflow"])


@router.get("/statuses", response_model=List[schemas.StatusOut])
def list_statuses():
    return [serializers.status(value) for value in models.OrderStatus]


@router.get("/edges", response_model=List[schemas.EdgeOut])
def list_edges(role: Optional[models.Role] = Query(None)):
    edges = registry.edges_for_role(role) if role is not None else registry.EDGES
    return [serializers.edge(edge) for edge in edges]


@router.get("/stats", response_model=Dict[str, int])
def status_counts(engine: Engine):
    try:
        return engine.status_counts()
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/roles/{role}/stages", response_model=List[schemas.StageOut])
def list_role_stages(role: models.Role, engine: Engine):
    try:
        counts = engine.stage_counts(role)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [serializers.stage(role, definition, counts.get(definition.name, 0)) for definition in stages.stages_for(role)]


@router.get("/roles/{role}/stages/{stage}/orders", response_model=List[schemas.OrderOut])
def list_stage_orders(
    role: models.Role,
    stage: str,
    engine: Engine,
    actor_id: Optional[str] = Query(None, description="Delivery tabs only: narrow to one rider."),
):
    try:
        return engine.list_stage_orders(role, stage, actor_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/roles/{role}/stages/{stage}/next", response_model=Optional[models.OrderStatus])
def stage_next_status(role: models.Role, stage: str, outcome: Optional[registry.QCOutcome] = Query(None)):
    try:
        return stages.next_status(role, stage, outcome)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/orders/{order_id}/transitions", response_model=schemas.OrderOut)
def attempt_transition(order_id: str, payload: schemas.TransitionRequest, engine: Engine):
    try:
        return engine.attempt_transition(payload.role, order_id, payload.to_status, payload.context)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.post("/orders/{order_id}/override", response_model=schemas.OrderOut)
def override_status(order_id: str, payload: schemas.OverrideRequest, engine: Engine):
    try:
        return engine.override_status(
            payload.role,
            order_id,
            payload.to_status,
            payload.reason,
            actor_id=payload.actor_id,
            actor_name=payload.actor_name,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
