"""Maturity assessment engine service entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from mat_assessment_engine import __version__
from mat_assessment_engine.api.router import router
from mat_assessment_engine.database import create_schema, dispose_database, init_database
from mat_assessment_engine.errors import (
    ConflictError,
    MaturityEngineError,
    NotFoundError,
    PolicyError,
    ValidationError,
)
from mat_assessment_engine.observability import configure_logging
from mat_assessment_engine.settings import get_settings

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR: dict[type[MaturityEngineError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    PolicyError: status.HTTP_403_FORBIDDEN,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        None
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_output=settings.log_json)

    # Startup
    engine = init_database(settings.database_url, echo=settings.database_echo)
    if settings.create_schema_on_startup:
        await create_schema(engine)
        logger.info("Database schema ensured")
    logger.info("Service started", service=settings.service_name, version=__version__)
    yield
    # Shutdown
    await dispose_database()


async def handle_engine_error(request: Request, exc: MaturityEngineError) -> JSONResponse:
    """Translate engine errors into JSON error responses."""
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    logger.info(
        "Request rejected",
        path=request.url.path,
        status_code=status_code,
        error_code=exc.error_code.value,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Build the FastAPI application with routes and error handlers."""
    application = FastAPI(
        title="mat-assessment-engine",
        version=__version__,
        lifespan=lifespan,
    )
    application.add_exception_handler(MaturityEngineError, handle_engine_error)  # type: ignore[arg-type]
    application.include_router(router, prefix="/api/v1")
    return application


app: FastAPI = create_app()
