import logging

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from drc.config import Settings, settings
from drc.ratelimit import FixedWindowRateLimiter
from drc.realtime import Broadcaster
from drc.realtime import router as realtime_router
from drc.routers import disasters, enrichment, reports
from drc.services.gemini import GeminiClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    app = FastAPI(title="Disaster Response Coordination API", version="1.0.0")

    # Shared collaborators, handed to request handlers through dependencies.
    app.state.settings = app_settings
    app.state.broadcaster = Broadcaster()
    app.state.rate_limiter = FixedWindowRateLimiter(
        app_settings.rate_limit_requests, app_settings.rate_limit_window_seconds
    )
    app.state.gemini = GeminiClient(app_settings.gemini_api_key, app_settings.gemini_model)
    app.state.http_client = None

    origins = [o.strip() for o in app_settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(disasters.router, prefix="/api")
    app.include_router(reports.router, prefix="/api")
    app.include_router(enrichment.router, prefix="/api")
    app.include_router(realtime_router)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        # Auto-create any missing tables (cache, disasters, reports, resources)
        from drc.database import engine
        from drc.models import Base

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

        if app.state.http_client is None:
            app.state.http_client = httpx.AsyncClient(
                timeout=app_settings.http_timeout_seconds
            )

        logger.info(
            f"DATABASE_URL scheme: {app_settings.database_url.split('@')[0].split('://')[0]}"
        )
        logger.info(f"PORT: {app_settings.port}")
        logger.info(f"CORS origins: {origins}")
        logger.info("Disaster Response Coordination API started")

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.http_client is not None:
            await app.state.http_client.aclose()

    return app


app = create_app()
