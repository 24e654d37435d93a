# hygiene_backend/app.py
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import engine, init_db
from .errors import register_exception_handlers
from .events import router as events_router
from .logging_config import RequestLoggingMiddleware, setup_logging

from .routers import auth as auth_router
from .routers import users as users_router
from .routers import complaints as complaints_router
from .routers import sensors as sensors_router
from .routers import feedback as feedback_router
from .routers import admin as admin_router


logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title="IoT Hygiene Backend", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    # Ensure DB tables exist
    init_db()

    # --- Routers ---
    app.include_router(auth_router.router)
    app.include_router(users_router.router)
    app.include_router(complaints_router.router)
    app.include_router(sensors_router.router)
    app.include_router(feedback_router.router)
    app.include_router(admin_router.router)

    # Real-time event stream
    app.include_router(events_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    logger.info("Application ready (db=%s)", engine.url.render_as_string(hide_password=True))
    return app


app = create_app()
