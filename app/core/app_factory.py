"""Application factory helpers to keep app/main.py lightweight.

The lifespan builds the delivery stack (socket registries, push dispatcher, history
recorder, shift batcher and orchestrator) and hangs it on `app.state`; shutdown
drains the batcher and closes every socket.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from app.api import api_router, websocket_router
from app.core.config import Settings, settings as default_settings
from app.core.database import SessionLocal
from app.core.error_handlers import register_exception_handlers
from app.core.logging_config import setup_logging
from app.core.middleware import LoggingMiddleware, limiter
from app.firebase_config import initialize_firebase
from app.modules.notifications import (
    ChatRegistry,
    DeliveryOrchestrator,
    DeviceTokenStore,
    HistoryRecorder,
    NotificationBatcher,
    PushDispatcher,
    TaskRegistry,
    TimesheetRegistry,
)

logger = logging.getLogger(__name__)


def build_delivery_stack(
    app: FastAPI,
    *,
    settings: Settings,
    session_factory: sessionmaker,
    dispatcher: Optional[PushDispatcher] = None,
) -> DeliveryOrchestrator:
    """Wire the delivery components together and expose them on `app.state`."""
    chat = ChatRegistry()
    tasks = TaskRegistry()
    timesheet = TimesheetRegistry()
    devices = DeviceTokenStore(session_factory)
    recorder = HistoryRecorder(
        session_factory,
        default_page_size=settings.NOTIFICATION_HISTORY_PAGE_SIZE,
        max_page_size=settings.NOTIFICATION_HISTORY_MAX_PAGE_SIZE,
        role_cache_ttl=settings.ROLE_CACHE_TTL_SECONDS,
    )
    dispatcher = dispatcher or PushDispatcher(
        enabled=settings.push_notifications_enabled
    )
    batcher = NotificationBatcher(
        dispatcher,
        recorder,
        devices.tokens_for_users,
        window=settings.NOTIFICATION_BATCH_WINDOW_SECONDS,
        token_pruner=devices.prune,
    )
    orchestrator = DeliveryOrchestrator(
        chat=chat,
        tasks=tasks,
        timesheet=timesheet,
        batcher=batcher,
        dispatcher=dispatcher,
        recorder=recorder,
        devices=devices,
        frontend_url=settings.frontend_url,
        chat_body_limit=settings.CHAT_PUSH_BODY_LIMIT,
    )

    app.state.chat_registry = chat
    app.state.task_registry = tasks
    app.state.timesheet_registry = timesheet
    app.state.device_store = devices
    app.state.history_recorder = recorder
    app.state.push_dispatcher = dispatcher
    app.state.notification_batcher = batcher
    app.state.orchestrator = orchestrator
    return orchestrator


async def shutdown_delivery_stack(app: FastAPI) -> None:
    orchestrator: Optional[DeliveryOrchestrator] = getattr(
        app.state, "orchestrator", None
    )
    if orchestrator is None:
        return
    await orchestrator.batcher.close()
    for registry in (orchestrator.chat, orchestrator.tasks, orchestrator.timesheet):
        await registry.close_all()
    app.state.orchestrator = None


def _lifespan_factory(
    settings: Settings,
    session_factory: sessionmaker,
    dispatcher: Optional[PushDispatcher],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        orchestrator = build_delivery_stack(
            app,
            settings=settings,
            session_factory=session_factory,
            dispatcher=dispatcher,
        )
        if orchestrator.dispatcher.enabled and dispatcher is None:
            if not initialize_firebase(settings):
                orchestrator.dispatcher.enabled = False
                logger.warning("Push delivery disabled: Firebase is not configured")
        logger.info("Delivery stack ready: %s", orchestrator.metrics())

        yield

        # Shutdown
        await shutdown_delivery_stack(app)

    return lifespan


def _configure_app(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(LoggingMiddleware)

    origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(websocket_router)


def _register_routes(app: FastAPI) -> None:
    @app.get("/livez", tags=["Health"])
    async def livez():
        return {"status": "ok"}

    @app.get("/readyz", tags=["Health"])
    async def readyz():
        health_status = {"database": "unknown"}
        is_ready = True

        try:
            with app.state.session_factory() as db:
                db.execute(text("SELECT 1"))
            health_status["database"] = "connected"
        except Exception as e:
            logger.error(f"Readiness check failed (Database): {e}")
            health_status["database"] = "disconnected"
            is_ready = False

        orchestrator = getattr(app.state, "orchestrator", None)
        if orchestrator is None:
            health_status["delivery"] = "not started"
            is_ready = False
        else:
            health_status["delivery"] = orchestrator.metrics()

        if not is_ready:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=health_status
            )
        return {"status": "ready", "details": health_status}


def create_app(
    *,
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    dispatcher: Optional[PushDispatcher] = None,
) -> FastAPI:
    """
    Application Factory to create and configure the FastAPI application.
    `session_factory` and `dispatcher` let tests swap the database and the push provider.
    """
    settings = settings or default_settings

    setup_logging(
        log_level=settings.log_level,
        log_dir=settings.log_dir,
        app_name="care-notifications",
        use_json=settings.use_json_logs,
        use_colors=settings.environment.lower() != "production",
    )

    app = FastAPI(
        title="Care Staffing Notifications",
        description="Real-time sockets, batched push and notification history",
        version="1.0.0",
        lifespan=_lifespan_factory(
            settings, session_factory or SessionLocal, dispatcher
        ),
        default_response_class=ORJSONResponse,
    )

    app.state.environment = settings.environment
    app.state.session_factory = session_factory or SessionLocal
    app.state.limiter = limiter

    _configure_app(app, settings)
    _register_routes(app)
    register_exception_handlers(app)

    logger.info("Application startup complete")
    return app


__all__ = ["create_app", "build_delivery_stack", "shutdown_delivery_stack"]
