"""FastAPI application entry point.

This module wires together the API routers, configures middleware and
startup tasks, and exposes the ASGI application object used by the
server.
"""

import os
import logging
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from app.routes import (
    auth,
    users,
    admin,
    settings,
    sessions,
    courses,
    progress,
    scores,
    badges,
    certificates,
)
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import create_db_and_tables, async_session, get_session
from app.crud import ensure_permissions_exist, get_all_users, get_settings
from app.badges import check_and_create_missing_badges
from app.acl import ALL_PERMISSIONS
import asyncio

# Basic logging configuration.  The log level can be controlled with an
# environment variable so deployments can adjust verbosity without code
# changes.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL))
logger = logging.getLogger(__name__)

# Hours between missing-badge sweeps; 0 disables the background task.
BADGE_CHECK_INTERVAL_HOURS = float(os.getenv("BADGE_CHECK_INTERVAL_HOURS", "24"))

app = FastAPI(docs_url=None)


def custom_openapi():
    """Generate an OpenAPI schema that is aware of our `/api` proxy prefix."""

    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    # The reverse proxy serves the API under `/api`; tell Swagger about it.
    openapi_schema["servers"] = [{"url": "/api"}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    """Initialize the database and kick off background tasks."""

    await create_db_and_tables()
    async with async_session() as session:
        # Ensure any new permissions are inserted into the database on startup.
        await ensure_permissions_exist(session, ALL_PERMISSIONS)
        # Seed the settings row before requests race to create it.
        await get_settings(session)
    if BADGE_CHECK_INTERVAL_HOURS > 0:
        asyncio.create_task(badge_check_task())


async def sweep_missing_badges() -> int:
    """Award badges for completed courses that never got evaluated."""

    created = 0
    async with async_session() as session:
        user_ids = [u.id for u in await get_all_users(session)]
        for user_id in user_ids:
            created += len(await check_and_create_missing_badges(session, user_id))
    return created


async def badge_check_task():
    """Background coroutine that periodically repairs missing badges."""

    logger.info("Starting badge check task")
    while True:
        try:
            created = await sweep_missing_badges()
            if created:
                logger.info("Badge check task created %d badge(s)", created)
        except Exception as exc:
            logger.exception("Badge check task failed: %s", exc)
        await asyncio.sleep(BADGE_CHECK_INTERVAL_HOURS * 60 * 60)


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(settings.router)
app.include_router(sessions.router)
app.include_router(courses.router)
app.include_router(progress.router)
app.include_router(scores.router)
app.include_router(badges.router)
app.include_router(certificates.router)


@app.get("/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    """Serve the interactive docs with the correct API prefix."""

    # The API is served behind a `/api` prefix by the reverse proxy; point the
    # docs at the prefixed schema so requests are routed correctly.
    return get_swagger_ui_html(openapi_url="/api/openapi.json", title="API Docs")


@app.get("/")
async def read_root(db: AsyncSession = Depends(get_session)):
    s = await get_settings(db)
    return {"message": f"Welcome to {s.site_name} API"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler that logs the stack trace once."""
    logger.exception("Unhandled error during request %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
