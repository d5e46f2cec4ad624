# model_repo/main.py
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .api.v1 import auth, health, models, users
from .core.config import Settings, get_settings
from .core.database import Catalog
from .core.errors import RepositoryError
from .core.logging_config import configure_logging
from .domain.storage import LocalModelStore


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RepositoryError)
    async def repository_error(request: Request, exc: RepositoryError):
        if exc.status_code >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title=settings.APP_NAME, version="1.0.0")
    app.state.settings = settings
    app.state.catalog = Catalog(settings.DB_URL)
    app.state.store = LocalModelStore(settings.UPLOAD_ROOT)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.on_event("startup")
    def startup_event():
        app.state.catalog.open().init_schema()
        logger.info("{} started (env={}, uploads={})", settings.APP_NAME, settings.ENV, settings.UPLOAD_ROOT)

    @app.on_event("shutdown")
    def shutdown_event():
        app.state.catalog.close()

    app.include_router(health.router, tags=["system"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(models.router, prefix="/api/models", tags=["models"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])

    return app
