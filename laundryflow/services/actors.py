from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models, schemas


def create_delivery_actor(db: Session, payload: schemas.DeliveryActorCreate) -> models.DeliveryActor:
    if payload.id and db.get(models.DeliveryActor, payload.id) is not None:
        raise ValueError(f"delivery actor {payload.id} already exists")
    actor = models.DeliveryActor(**payload.model_dump(exclude_none=True))
    db.add(actor)
    db.commit()
    db.refresh(actor)
    return actor


def list_delivery_actors(db: Session, *, active_only: bool = True) -> Sequence[models.DeliveryActor]:
    stmt = select(models.DeliveryActor).order_by(models.DeliveryActor.name.asc())
    if active_only:
        stmt = stmt.where(models.DeliveryActor.active.is_(True))
    return db.scalars(stmt).all()


def get_delivery_actor(db: Session, actor_id: str) -> models.DeliveryActor | None:
    return db.get(models.DeliveryActor, actor_id)
