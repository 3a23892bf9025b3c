from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from . import database, models, schemas
from .repositories.sql import SqlOrderStore
from .services import actors as actor_service
from .services import orders as order_service
from .workflow.engine import WorkflowEngine


def _order_payload(customer_id: str, name: str, phone: str, address: str, items) -> schemas.OrderCreate:
    return schemas.OrderCreate(
        customer_id=customer_id,
        customer_name=name,
        phone_number=phone,
        address=address,
        expected_delivery=datetime.utcnow() + timedelta(days=3),
        payment_method=models.PaymentMethod.cash,
        items=[
            schemas.OrderItemCreate(description=description, quantity=quantity, unit_price_cents=price)
            for description, quantity, price in items
        ],
    )


def main() -> None:
    database.Base.metadata.create_all(database.engine)
    db: Session = database.SessionLocal()
    try:
        if order_service.list_orders(db, limit=1):
            print("Database already seeded; skipping.")
            return

        rider = actor_service.create_delivery_actor(
            db, schemas.DeliveryActorCreate(id="rider-ravi", name="Ravi Kumar", phone_number="+91-98450-00001")
        )
        actor_service.create_delivery_actor(
            db, schemas.DeliveryActorCreate(id="rider-anita", name="Anita Rao", phone_number="+91-98450-00002")
        )

        store = SqlOrderStore(db)
        engine = WorkflowEngine(store)

        store.create_order(
            _order_payload(
                "CUST-001",
                "Meera Shah",
                "+91-90000-11111",
                "14 MG Road, Bengaluru",
                [("Silk saree", 1, 45000), ("Wool blazer", 1, 30000)],
            )
        )

        picked = store.create_order(
            _order_payload(
                "CUST-002",
                "Arjun Nair",
                "+91-90000-22222",
                "7 Church Street, Bengaluru",
                [("Cotton shirt", 3, 8000)],
            )
        )
        engine.attempt_transition(
            models.Role.frontdesk,
            picked.id,
            models.OrderStatus.ready_for_pickup,
            schemas.TransitionContext(delivery_actor_id=rider.id),
        )
        engine.attempt_transition(
            models.Role.delivery,
            picked.id,
            models.OrderStatus.received_in_workshop,
            schemas.TransitionContext(actor_id=rider.id, actor_name=rider.name, verified_items=[0]),
        )
        engine.attempt_transition(models.Role.backoffice, picked.id, models.OrderStatus.tag_printed)

        print("Seed data inserted.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
