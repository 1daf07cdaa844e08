import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notification_service.config import get_settings
from notification_service.infrastructure.database import SessionLocal, engine, initialize_database
from notification_service.interfaces.api.routes import register_routes
from notification_service.service import NotificationService

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(*, run_background: bool | None = None) -> FastAPI:
    """Create the FastAPI application exposing the notification query API.

    With background workers enabled the lifespan also runs the event consumer,
    the realtime delivery channel and the audit producer.
    """

    settings = get_settings()
    if run_background is None:
        run_background = settings.run_background_workers

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        initialize_database()
        service = NotificationService(settings, SessionLocal)
        app.state.service = service
        if run_background:
            await service.start()
        else:
            logger.info("Background workers disabled; serving the query API only")
        try:
            yield
        finally:
            if run_background:
                await service.stop()
            engine.dispose()

    app = FastAPI(title="Notification Service", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
