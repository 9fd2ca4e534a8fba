import logging

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import get_db
from app.core.config import settings
from app.core.logging import setup_logging
from app.routers import couples as couples_router
from app.routers import sessions as sessions_router
from app.routers import achievements as achievements_router
from app.routers import presence as presence_router
from app.routers import questions as questions_router
from app.core.errors import (
    SyncException,
    sync_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

setup_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Couple Sync API",
    description=(
        "**Couple Synchronization Engine**\n\n"
        "Pairs two users through a single-use invite code, runs one shared daily "
        "question per couple, resolves both answers into a single match result, "
        "and maintains sync score, streaks, presence and achievements.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(SyncException, sync_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(couples_router.router)
app.include_router(questions_router.router)
app.include_router(sessions_router.router)
app.include_router(achievements_router.router)
app.include_router(presence_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError as exc:
        logger.warning("health check: database unreachable: %s", exc)
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
