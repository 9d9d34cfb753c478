"""FastAPI application factory and dependency injection setup."""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sef_accounting.api.routes import (
    account_router,
    advance_router,
    health_router,
    journal_router,
    report_router,
    tax_report_router,
    vat_record_router,
)
from sef_accounting.config import get_settings
from sef_accounting.container import get_container, get_database, reset_container
from sef_accounting.exceptions import SefAccountingError
from sef_accounting.logging_config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from sef_accounting.repositories.sqlite import SQLiteDatabase

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and open the database on startup; close it on shutdown."""
    settings = get_settings()
    configure_logging(settings)

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
    )

    container = get_container()
    _ = container.database

    logger.info("application_started")

    yield

    logger.info("application_stopping")
    reset_container()
    logger.info("application_stopped")


def get_db() -> SQLiteDatabase:
    """Database dependency; tests override it through app.dependency_overrides."""
    return get_database()


async def log_request_middleware(request: Request, call_next):
    """Bind request_id (and company_id when given as a query parameter) to logs.

    The id is echoed in the ``X-Request-ID`` response header; a caller-supplied
    header value is reused.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
    bind_context(request_id=request_id, path=request.url.path, method=request.method)
    company_id = request.query_params.get("company_id")
    if company_id:
        bind_context(company_id=company_id)

    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug("request_completed", status_code=response.status_code)
        return response
    finally:
        clear_context()


async def exception_handler(request: Request, exc: SefAccountingError) -> JSONResponse:
    """Translate domain exceptions into JSON error bodies."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "domain_exception",
        category=exc.category.value,
        error_code=exc.error_code,
        message=exc.message,
        context=exc.context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Ledger, advance invoice and PPPDV tax period engine for SEF e-invoicing",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(log_request_middleware)

    app.add_exception_handler(SefAccountingError, exception_handler)

    # Routes declare Depends() on SQLiteDatabase; resolve it through get_db.
    app.dependency_overrides[SQLiteDatabase] = get_db

    app.include_router(health_router)
    app.include_router(account_router)
    app.include_router(journal_router)
    app.include_router(report_router)
    app.include_router(advance_router)
    app.include_router(vat_record_router)
    app.include_router(tax_report_router)

    return app


# Create app instance for uvicorn
app = create_app()
