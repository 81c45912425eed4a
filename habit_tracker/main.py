"""
FastAPI application factory.

Run with::

    uvicorn --factory habit_tracker.main:create_app --reload
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .db import build_engine, create_db_and_tables
from .errors import register_error_handlers
from .logging_config import setup_logging
from .progression import ProgressionRules
from .routes import router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    settings: Settings = app.state.settings
    logger.info("application_startup", app_name=settings.app_name, env=settings.app_env)
    create_db_and_tables(app.state.engine)
    yield
    app.state.engine.dispose()
    logger.info("application_shutdown")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(title="Habit Tracker API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.rules = ProgressionRules.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Response:
        request_id = str(uuid.uuid4())
        start_time = time.time()
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
        logger.info("request_started")
        response = await call_next(request)
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response

    register_error_handlers(app)
    app.include_router(router)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run("habit_tracker.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=settings.app_env == "development")
