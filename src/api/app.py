from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from src.api.errors import register_exception_handlers
from src.api.routes.routes import router
from src.infrastructure.config import Settings, load_settings
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import build_engine, build_session_factory
from src.infrastructure.gateways.mpesa_gateway import MpesaGateway, PaymentGateway


logger = logging.getLogger(__name__)


def _wait_for_db(engine: Engine, max_retries: int, retry_delay_seconds: float) -> None:
    # Handles the common case where API starts before Postgres is ready.
    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL and Postgres status.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


def create_app(
    settings: Settings | None = None,
    gateway: PaymentGateway | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    engine = build_engine(settings.database_url)
    gateway = gateway or MpesaGateway(settings.mpesa)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _wait_for_db(engine, settings.db_connect_max_retries, settings.db_connect_retry_delay)
        Base.metadata.create_all(bind=engine)
        if not settings.callback_token:
            logger.warning("MPESA_CALLBACK_TOKEN is not set; payment callbacks are not authenticated.")
        yield
        close = getattr(app.state.gateway, "close", None)
        if callable(close):
            close()
        engine.dispose()

    app = FastAPI(title="Turf Booking Engine", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.gateway = gateway

    app.include_router(router)
    register_exception_handlers(app)
    return app
