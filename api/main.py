"""
FastAPI application for the Bookworm API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorResponse, HealthResponse
from api.routes import auth as auth_routes
from api.routes import books as book_routes
from auth.gate import AuthGate
from auth.passwords import PasswordHasher
from auth.tokens import TokenService
from media.images import ImageHost
from scheduler.keepalive import KeepAliveService
from store.books import BookCatalog
from store.database import MongoDBManager
from store.users import UserDirectory
from utilities.config import AppConfig
from utilities.errors import BookwormError
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

API_VERSION = "1.0.0"


def build_services(app: FastAPI, config: AppConfig, db_manager: MongoDBManager, image_host: ImageHost) -> None:
    """Wire the domain services onto ``app.state``."""
    tokens = TokenService.from_config(config)
    users = UserDirectory(db_manager, PasswordHasher(rounds=config.bcrypt_rounds), tokens)

    app.state.db_manager = db_manager
    app.state.users = users
    app.state.catalog = BookCatalog(db_manager, image_host)
    app.state.gate = AuthGate(tokens, users)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    config: AppConfig = app.state.config
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Bookworm API", port=config.port)

    db_manager = MongoDBManager(config.mongo_uri, config.mongo_database)
    try:
        await db_manager.connect()
        logger.info("Database connection established")
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    build_services(app, config, db_manager, ImageHost(config))

    keepalive = KeepAliveService(config)
    keepalive.start()

    yield

    logger.info("Shutting down Bookworm API")
    keepalive.stop()
    await db_manager.disconnect()


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Create the FastAPI application.
    Served by ``run_api.py`` or ``uvicorn --factory api.main:create_app``.

    Args:
        config: Application configuration; read from the environment when omitted
    """
    config = config or AppConfig()

    app = FastAPI(
        title="Bookworm API",
        description="""
    Backend for a social book recommendation app.

    ## Authentication

    Book endpoints require the token returned by register or login:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
        version=API_VERSION,
        lifespan=lifespan
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BookwormError)
    async def bookworm_exception_handler(request: Request, exc: BookwormError):
        """Render domain errors with their status."""
        if exc.status_code >= 500:
            logger.error("Request failed", path=request.url.path, error=exc.message, detail=exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                message=exc.message,
                detail=exc.detail if config.debug else None,
                status_code=exc.status_code
            ).model_dump()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies and query parameters are client errors."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                message="Invalid request",
                detail=str(exc.errors()) if config.debug else None,
                status_code=status.HTTP_400_BAD_REQUEST
            ).model_dump()
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                message="Internal server error",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            ).model_dump()
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint, also the usual keep-alive target."""
        db_status = "unknown"
        db_manager = getattr(request.app.state, "db_manager", None)
        if db_manager is not None:
            health_info = await db_manager.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=API_VERSION,
            database_status=db_status
        )

    app.include_router(auth_routes.router)
    app.include_router(book_routes.router)
    return app

