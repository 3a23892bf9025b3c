from __future__ import annotations

from typing import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from laundryflow import schemas
from laundryflow.database import Base, get_db
from laundryflow.repositories import InMemoryOrderStore, SqlOrderStore
from laundryflow.workflow.notifier import NotificationCenter


@pytest.fixture()
def db_session() -> Session:
    # StaticPool keeps one connection so TestClient worker threads see the same in-memory database.
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def sql_store(db_session: Session) -> SqlOrderStore:
    return SqlOrderStore(db_session)


@pytest.fixture()
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore(
        delivery_actors=[
            schemas.DeliveryActorOut(id="D1", name="Ravi Kumar", active=True),
            schemas.DeliveryActorOut(id="D2", name="Anita Rao", active=True),
            schemas.DeliveryActorOut(id="D9", name="Former Rider", active=False),
        ]
    )


def _order_payload(item_count: int = 3, **overrides) -> schemas.OrderCreate:
    data = dict(
        customer_id="CUST-001",
        customer_name="Meera Shah",
        phone_number="+91-90000-11111",
        address="14 MG Road, Bengaluru",
        items=[
            schemas.OrderItemCreate(description=f"Garment {index + 1}", quantity=1, unit_price_cents=5000)
            for index in range(item_count)
        ],
    )
    data.update(overrides)
    return schemas.OrderCreate(**data)


@pytest.fixture()
def order_payload() -> Callable[..., schemas.OrderCreate]:
    return _order_payload


@pytest.fixture()
def make_order(store: InMemoryOrderStore) -> Callable[..., schemas.OrderOut]:
    def factory(item_count: int = 3, **overrides) -> schemas.OrderOut:
        return store.create_order(_order_payload(item_count, **overrides))

    return factory


@pytest.fixture()
def client(db_session: Session):
    from laundryflow.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.notifications = NotificationCenter(SqlOrderStore(db_session).fetch_orders, interval=60)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.notifications = None
