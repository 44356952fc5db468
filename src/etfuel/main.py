"""
FastAPI application entry point.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from etfuel import __version__
from etfuel.auth.router import router as auth_router
from etfuel.config import IdentityProviderType, Settings, get_settings
from etfuel.shared.correlation import CorrelationIdMiddleware
from etfuel.shared.exceptions import AppException, InvalidCredentialsError
from etfuel.shared.firebase import get_firebase_manager
from etfuel.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _error_body(message: str, details: str | None = None) -> dict[str, object]:
    body: dict[str, object] = {"success": False, "error": message}
    if details:
        body["details"] = details
    return body


def _exception_details(exc: AppException) -> str | None:
    """Underlying cause text; never exposed for credential failures."""
    if isinstance(exc, InvalidCredentialsError):
        return None
    if exc.__cause__ is not None:
        return str(exc.__cause__)
    error = exc.details.get("error")
    return str(error) if error else None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)

    logger.info(
        "Application starting",
        extra={"env": settings.app_env, "identity_provider": settings.identity_provider.value},
    )

    firebase = None
    if settings.identity_provider == IdentityProviderType.FIREBASE:
        firebase = get_firebase_manager()
        try:
            _ = firebase.app
        except ValueError:
            # Requests surface the configuration error; keep the process up.
            logger.exception("Firebase Admin initialization failed")

    yield

    logger.info("Shutting down application")
    if firebase is not None:
        firebase.close()
    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="etfuel API",
        description="Email/password authentication backed by a managed identity provider",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "status_code": exc.status_code,
                "code": exc.code,
            },
        )
        details = _exception_details(exc) if settings.is_development else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        fields = [".".join(str(loc) for loc in error["loc"]) for error in exc.errors()]
        logger.info(
            "Request validation failed",
            extra={"path": request.url.path, "fields": fields},
        )
        details = "; ".join(f"{f}: {e['msg']}" for f, e in zip(fields, exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("Invalid request", details if settings.is_development else None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(
                "Internal server error",
                str(exc) if settings.is_development else None,
            ),
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
