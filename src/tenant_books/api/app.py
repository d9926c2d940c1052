"""FastAPI application factory."""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tenant_books.api.routes import (
    ai_router,
    asset_router,
    bank_router,
    budget_router,
    categorization_router,
    entity_router,
    fiscal_router,
    gl_account_router,
    health_router,
    invoicing_router,
    journal_router,
    posting_router,
    reconciliation_router,
    report_router,
    tenant_router,
    transfer_router,
)
from tenant_books.config import get_settings
from tenant_books.container import get_container, reset_container
from tenant_books.exceptions import TenantBooksError
from tenant_books.logging_config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and open the database on startup, close it on shutdown."""
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


async def log_request_middleware(request: Request, call_next):
    """Middleware to add request context to logs."""
    request_id = str(uuid.uuid4())[:8]
    bind_context(request_id=request_id, path=request.url.path, method=request.method)

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.debug(
            "request_completed",
            status_code=response.status_code,
        )
        return response
    finally:
        clear_context()


async def exception_handler(request: Request, exc: TenantBooksError) -> JSONResponse:
    """Handle domain exceptions and return appropriate JSON responses."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "domain_exception",
        error_code=exc.error_code,
        message=exc.message,
        context=exc.context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Multi-tenant double-entry bookkeeping for small businesses",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(log_request_middleware)
    app.add_exception_handler(TenantBooksError, exception_handler)

    app.include_router(health_router)
    app.include_router(tenant_router)
    app.include_router(entity_router)
    app.include_router(gl_account_router)
    app.include_router(journal_router)
    app.include_router(fiscal_router)
    app.include_router(bank_router)
    app.include_router(posting_router)
    app.include_router(transfer_router)
    app.include_router(reconciliation_router)
    app.include_router(invoicing_router)
    app.include_router(report_router)
    app.include_router(budget_router)
    app.include_router(asset_router)
    app.include_router(categorization_router)
    app.include_router(ai_router)

    return app


# Create app instance for uvicorn
app = create_app()
