"""
Application entry point: builds the FastAPI app and manages store client lifecycle.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from launch_ledger.config import settings
from launch_ledger.infrastructure.observability.logging import get_logger, setup_logging
from launch_ledger.middleware import CORSMiddleware, RequestContextMiddleware
from launch_ledger.routes import admin, cron, health, launches, vote
from launch_ledger.services.container import ServiceContainer, build_services

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)

# Error codes for HTTPExceptions raised by auth dependencies and routing
HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-built container. When given, its clients are assumed to
            be managed by the caller and the lifespan does not open or close them.
    """
    owns_services = services is None
    container = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown with proper resource management."""
        logger.info("Application starting", environment=settings.environment, debug=settings.debug)

        if owns_services:
            await container.startup()

        yield

        logger.info("Application shutting down")
        if owns_services:
            await container.shutdown()

    app = FastAPI(
        title="Launch Ledger",
        description="Daily app launch lifecycle and vote ledger",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = container

    app.add_middleware(CORSMiddleware, allowed_origins=container.settings.cors_origins())
    # Added last so it runs first and every log line carries the request id
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Request validation failed", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request",
                "code": "INVALID_INPUT",
                "details": jsonable_errors(exc),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "code": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
            },
            headers=exc.headers,
        )

    # Include routers
    app.include_router(health.router)
    app.include_router(launches.router)
    app.include_router(vote.router)
    app.include_router(admin.router)
    app.include_router(cron.router)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
