from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every problem so the operator can fix all
    of them in one restart cycle.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database -------------------------------------------------------
    has_url = any(
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    )
    has_secret = any(os.getenv(name, "").strip() for name in ("DB_SECRET_FILE", "DB_SECRET_JSON"))
    if not has_url and not has_secret:
        errors.append(
            "No database configured. Set DATABASE_URL (or CLOUD_/LOCAL_DATABASE_URL), "
            "or provide credentials via DB_SECRET_FILE / DB_SECRET_JSON."
        )

    # --- Event bus ------------------------------------------------------
    bus_url = os.getenv("EVENT_BUS_URL", "").strip()
    if bus_url and not bus_url.startswith(("http://", "https://")):
        errors.append(f"EVENT_BUS_URL='{bus_url}' must be an http(s) URL.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database;
    otherwise startup aborts so migrations are run first. Does NOT
    auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the scheduler on boot; shut it down on exit."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")

    from app.config import scheduler_enabled

    if not scheduler_enabled():
        logging.getLogger(__name__).info("Scheduler disabled via SCHEDULER_ENABLED")
        yield
        return

    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logging.getLogger(__name__).info("Scheduler shut down")


def create_app(*, lifespan_enabled: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    ``lifespan_enabled=False`` skips environment validation and the startup
    database/scheduler checks, for embedding the routers against an
    externally managed session.
    """

    if lifespan_enabled:
        _validate_env()
    _configure_logging()

    application = FastAPI(
        title="FoodRank Pipeline API",
        version="1.0.0",
        lifespan=_lifespan if lifespan_enabled else None,
    )

    from app.api.routers import analytics_router, imports_router, rankings_router

    application.include_router(imports_router)
    application.include_router(analytics_router)
    application.include_router(rankings_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application
