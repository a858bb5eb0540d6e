import logging
import sqlite3
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from marketplace.config import settings
from marketplace.database import SessionLocal, init_db
from marketplace.routers import (
    admin,
    applications,
    auth,
    favorites,
    invitations,
    jobs,
    messages,
    notifications,
    reviews,
    saved_jobs,
    stripe_webhook,
)
from marketplace.services.auth_service import auth_service
from marketplace.services.errors import MarketplaceError, TooManyAttempts

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("marketplace")


def _integrity_check() -> bool:
    conn = sqlite3.connect(str(settings.db_path))
    try:
        result = conn.execute("PRAGMA integrity_check").fetchone()
    finally:
        conn.close()
    if result and result[0] == "ok":
        logger.info("Database integrity check passed.")
        return True
    logger.error("DATABASE INTEGRITY CHECK FAILED: %s", result)
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create or upgrade the schema, check it, and seed the admin account.
    init_db()
    _integrity_check()
    if settings.admin_email and settings.admin_password:
        db = SessionLocal()
        try:
            auth_service.ensure_admin(db, settings.admin_email, settings.admin_password)
        finally:
            db.close()
    yield


app = FastAPI(
    title="Creator Marketplace",
    description="Marketplace connecting businesses and creators around paid jobs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    content = {"detail": exc.detail, "code": exc.code}
    headers = None
    if isinstance(exc, TooManyAttempts):
        content["retry_after_seconds"] = exc.retry_after_seconds
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Unhandled store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "internal_error"})


app.add_exception_handler(MarketplaceError, marketplace_error_handler)
app.add_exception_handler(SQLAlchemyError, store_error_handler)

app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(jobs.router, prefix=settings.api_prefix)
app.include_router(applications.router, prefix=settings.api_prefix)
app.include_router(invitations.router, prefix=settings.api_prefix)
app.include_router(messages.router, prefix=settings.api_prefix)
app.include_router(notifications.router, prefix=settings.api_prefix)
app.include_router(reviews.router, prefix=settings.api_prefix)
app.include_router(saved_jobs.router, prefix=settings.api_prefix)
app.include_router(favorites.router, prefix=settings.api_prefix)
app.include_router(stripe_webhook.router, prefix=settings.api_prefix)
app.include_router(admin.router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    database = "missing"
    if settings.db_path.exists():
        try:
            conn = sqlite3.connect(str(settings.db_path))
            try:
                conn.execute("SELECT 1").fetchone()
            finally:
                conn.close()
            database = "ok"
        except sqlite3.Error as exc:
            logger.error("Health check could not reach the database: %s", exc)
            database = "error"
    return {"status": "ok", "version": "0.1.0", "database": database}
