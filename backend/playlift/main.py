from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from playlift.config import settings
from playlift.logging_setup import configure_logging
from playlift.redis_client import close_redis
from playlift.routes.system import router as system_router
from playlift.routes.slack_oauth import router as slack_oauth_router
from playlift.routes.commands import router as commands_router
from playlift.routes.skip_votes import router as skip_votes_router
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info(
        "startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha,
        qstash=bool(settings.qstash_token), trigger_signing=settings.trigger_signing_enabled,
    )
    yield
    # Shutdown
    await close_redis()
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name}: shared Spotify queue and skip votes for Slack channels",
)

# Include routers
app.include_router(system_router)
app.include_router(slack_oauth_router)
app.include_router(commands_router)
app.include_router(skip_votes_router)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    # Edge caches must never serve Slack/QStash callbacks
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
    structlog.contextvars.clear_contextvars()
    return response
