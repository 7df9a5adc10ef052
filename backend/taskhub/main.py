"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from taskhub.api import router as api_router
from taskhub.config import get_settings
from taskhub.db.session import DBSession, close_db, init_db
from taskhub.exceptions import TaskHubError
from taskhub.middleware.logging import LoggingMiddleware
from taskhub.middleware.request_id import RequestIDMiddleware

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    logger.info("Starting TaskHub API", version=settings.app_version)
    await init_db()
    logger.info("Database connection initialized")

    yield

    # Shutdown
    logger.info("Shutting down TaskHub API")
    await close_db()
    logger.info("Database connection closed")


async def taskhub_error_handler(request: Request, exc: TaskHubError) -> ORJSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_error",
            status_code=exc.status_code,
            message=exc.message,
            data=exc.data,
        )
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_error_handler(request: Request, exc: HTTPException) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"statusCode": exc.status_code, "statusMessage": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    # Malformed ids, dates and bodies are client errors, not 422s
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return ORJSONResponse(
        status_code=400,
        content={"statusCode": 400, "statusMessage": "Invalid input", "data": errors},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return ORJSONResponse(
        status_code=500,
        content={"statusCode": 500, "statusMessage": "Internal server error"},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Task tracking and reporting for staff, projects and recurring work",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_exception_handler(TaskHubError, taskhub_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    # Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from the ingress
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    # Include API router
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}


@app.get("/health/ready")
async def readiness_check(db: DBSession) -> ORJSONResponse:
    """Ready only when the database answers."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("readiness_check_failed", error=str(e))
        return ORJSONResponse(
            status_code=503,
            content={"status": "not_ready", "database": "unavailable"},
        )
    return ORJSONResponse(content={"status": "ready", "database": "ok"})
