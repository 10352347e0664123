"""FastAPI application factory and server configuration."""

from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis import asyncio as aioredis

from practice.clients.object_store import ObjectStore, S3ObjectStore
from practice.config import get_settings
from practice.db.base import close_db, init_db
from practice.errors import register_exception_handlers
from practice.logconfig import configure_logging
from practice.middleware import RateLimitMiddleware, RequestIDMiddleware, SessionMiddleware
from practice.routes import activity, advice, auth, execution
from practice.services.activity_log import ActivityLogStore, BackgroundAppender
from practice.services.context import SessionStore
from practice.services.coordinator import Coordinator

log = structlog.get_logger()


def create_app(
    object_store: Optional[ObjectStore] = None,
    redis: Optional[aioredis.Redis] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``object_store`` and ``redis`` replace the S3 and Redis connections the
    app would otherwise open at startup.
    """
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        missing = settings.missing_required()
        if missing and settings.environment not in ("development", "test"):
            log.error("startup.missing_settings", missing=missing)
            raise RuntimeError(f"Missing required settings: {', '.join(missing)}")

        async with AsyncExitStack() as stack:
            await init_db()
            stack.push_async_callback(close_db)

            store = object_store
            if store is None:
                s3 = S3ObjectStore()
                await s3.start()
                stack.push_async_callback(s3.close)
                store = s3

            redis_client = redis
            if redis_client is None:
                redis_client = aioredis.from_url(
                    settings.redis_url, decode_responses=True
                )
                stack.push_async_callback(redis_client.aclose)

            log_store = ActivityLogStore(store)
            app.state.sessions = SessionStore(redis_client)
            app.state.log_store = log_store
            app.state.coordinator = Coordinator(log_store, BackgroundAppender(log_store))

            log.info("startup.complete", environment=settings.environment)
            yield
            log.info("shutdown.started")

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    # Last added runs first
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(SessionMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, tags=["auth"])
    app.include_router(activity.router, tags=["activity"])
    app.include_router(execution.router, tags=["execution"])
    app.include_router(advice.router, tags=["advice"])

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "practice-backend"}

    return app


app = create_app()
