"""FastAPI application entrypoint for the voucher redemption engine."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .api.v1.router import api_router
from .core.config import get_settings
from .core.database import Base, engine
from .jobs import register_scheduler
from . import models  # noqa: F401  table registration

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Voucher Redemption Engine", version="0.1.0")
    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("database error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    def create_tables() -> None:
        if settings.db_auto_create:
            Base.metadata.create_all(bind=engine)

    register_scheduler(app)
    return app


app = create_app()
