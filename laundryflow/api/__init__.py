from __future__ import annotations

from fastapi import FastAPI

from . import actors, notifications, orders, outbox, scan, workflow


def register_routers(app: FastAPI) -> None:
    app.include_router(orders.router)
    app.include_router(workflow.router)
    app.include_router(notifications.router)
    app.include_router(actors.router)
    app.include_router(scan.router)
    app.include_router(outbox.router)
