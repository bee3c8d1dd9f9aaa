"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tomcat_pilot import __version__
from tomcat_pilot.api.middleware import RequestLoggingMiddleware
from tomcat_pilot.api.v1.router import router as v1_router
from tomcat_pilot.config import Settings, get_settings
from tomcat_pilot.core.container import Services, build_services
from tomcat_pilot.core.exceptions import (
    BuildError,
    ConfigurationMutationError,
    InstallationNotFoundError,
    ManagerProtocolError,
    PortValidationError,
    ResourceBusyError,
    TomcatPilotError,
)
from tomcat_pilot.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

ERROR_STATUS: dict[type[TomcatPilotError], int] = {
    PortValidationError: status.HTTP_400_BAD_REQUEST,
    InstallationNotFoundError: status.HTTP_409_CONFLICT,
    ResourceBusyError: status.HTTP_409_CONFLICT,
    BuildError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ManagerProtocolError: status.HTTP_502_BAD_GATEWAY,
    ConfigurationMutationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: TomcatPilotError) -> int:
    for exc_type in type(exc).__mro__:
        if exc_type in ERROR_STATUS:
            return ERROR_STATUS[exc_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        configure_logging(settings)
        logger.info(
            "application.starting",
            version=__version__,
            project_dir=str(settings.project_path),
        )
        app.state.services = services or build_services(settings)
        await app.state.services.start()

        yield

        await app.state.services.shutdown()
        logger.info("application.shutdown")

    app = FastAPI(
        title="tomcat-pilot API",
        description="Build, deploy and control a local Apache Tomcat",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers
    @app.exception_handler(TomcatPilotError)
    async def tomcat_pilot_error_handler(
        request: Request, exc: TomcatPilotError
    ) -> JSONResponse:
        """Handle application-specific errors."""
        logger.warning(
            "request.failed",
            path=request.url.path,
            code=type(exc).__name__,
            error=exc.message,
        )
        return JSONResponse(
            status_code=status_for(exc),
            content={
                "error": {
                    "code": type(exc).__name__.upper(),
                    "message": exc.message,
                    "details": _jsonable(exc.details),
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )
        content: dict[str, Any] = {
            "code": "INTERNAL_ERROR",
            "message": str(exc) if settings.app_debug else "An unexpected error occurred",
        }
        if settings.app_debug:
            content["type"] = type(exc).__name__
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": content},
        )

    app.include_router(v1_router)
    return app


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value if isinstance(value, (str, int, float, bool, list, type(None))) else str(value)
        for key, value in details.items()
    }


def run() -> None:
    """Run the control API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
    )


if __name__ == "__main__":
    run()
