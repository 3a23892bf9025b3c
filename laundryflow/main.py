from __future__ import annotations

from fastapi import FastAPI

from .api import register_routers
from .api.dependencies import build_notification_center
from .core.config import get_settings
from .core.logging import configure_logging
from .database import Base, engine

configure_logging()
Base.metadata.create_all(bind=engine)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.APP_NAME,
        description="Guarded status transitions, stage dashboards and change notifications for laundry orders.",
        version=settings.VERSION,
    )

    register_routers(app)

    @app.on_event("startup")
    async def start_notifications() -> None:
        if getattr(app.state, "notifications", None) is None:
            app.state.notifications = build_notification_center()
        await app.state.notifications.start()

    @app.on_event("shutdown")
    async def stop_notifications() -> None:
        center = getattr(app.state, "notifications", None)
        if center is not None:
            await center.stop()

    @app.get("/", tags=["Health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
