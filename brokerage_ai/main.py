"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from brokerage_ai import __version__
from brokerage_ai.api import (
    compliance_router,
    documents_router,
    retrieval_router,
    transactions_router,
)
from brokerage_ai.core.config import settings
from brokerage_ai.core.errors import (
    BrokerageError,
    DependencyUnavailable,
    NotFoundError,
    RollupConflictError,
    ValidationError,
)
from brokerage_ai.core.logging import get_logger, setup_logging
from brokerage_ai.schemas import ErrorDetail, ErrorResponse, HealthResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    setup_logging()
    logger.info("API starting", environment=settings.environment, fact_store=settings.fact_store_backend)
    yield
    if settings.fact_store_backend == "postgres":
        from brokerage_ai.db.base import dispose_engine

        await dispose_engine()


def _error_response(status_code: int, exc: BrokerageError, field: str | None = None) -> JSONResponse:
    body = ErrorResponse(
        error=type(exc).__name__,
        message=str(exc),
        details=[ErrorDetail(field=field, message=str(exc))] if field else None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(ValidationError)
    async def validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc, field=exc.field)

    @app.exception_handler(RollupConflictError)
    async def conflict_handler(_request: Request, exc: RollupConflictError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(DependencyUnavailable)
    async def unavailable_handler(_request: Request, exc: DependencyUnavailable) -> JSONResponse:
        logger.error("Dependency unavailable", error=str(exc))
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


def create_app() -> FastAPI:
    """Application factory for creating the FastAPI instance."""
    app = FastAPI(
        title="Brokerage Compliance API",
        description=(
            "Compliance evaluation and fact retrieval for real-estate closing "
            "transactions.\n\n"
            "## Features\n"
            "- **Transactions**: Intake, parties, documents, manual close/void\n"
            "- **Compliance**: Evaluate checks and roll up lifecycle status\n"
            "- **Retrieval**: Vector search over document chunks and deal facts\n"
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(
        transactions_router,
        prefix="/api/v1/transactions",
        tags=["Transactions"],
    )
    app.include_router(
        documents_router,
        prefix="/api/v1/documents",
        tags=["Documents"],
    )
    app.include_router(
        compliance_router,
        prefix="/api/v1/compliance",
        tags=["Compliance"],
    )
    app.include_router(
        retrieval_router,
        prefix="/api/v1/retrieval",
        tags=["Retrieval"],
    )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint for container orchestration."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            fact_store=settings.fact_store_backend,
        )

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "service": "Brokerage Compliance API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
