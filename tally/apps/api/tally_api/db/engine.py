"""Database engine builder (SSOT).

Pool policy + production guardrails.
- Default: NullPool (client-side pooling disabled)
- ENV: TALLY_DB_POOL=nullpool|queuepool (default: nullpool)
- PROD: SQLite URLs rejected (PostgreSQL only)
- SQLite (dev/CI): check_same_thread disabled for the threadpool
"""

import logging
import os
import re
from typing import Any

from sqlalchemy import Engine, NullPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from tally_api.config.env import get_database_url, is_production_env

logger = logging.getLogger(__name__)


def _mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", url)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(database_url: str | None = None) -> Engine:
    """
    Build SQLAlchemy engine.

    Args:
        database_url: Database URL. If None, resolved via config.env.get_database_url().

    Returns:
        SQLAlchemy Engine instance.

    Raises:
        RuntimeError: If a SQLite URL is used in production.
        ValueError: If TALLY_DB_POOL has an unknown value.

    Environment Variables:
        TALLY_DB_POOL: Pool mode - "nullpool" (default) | "queuepool"
        TALLY_DB_POOL_SIZE: QueuePool size (default: 5, only for queuepool)
        TALLY_DB_MAX_OVERFLOW: QueuePool overflow (default: 10, only for queuepool)
    """
    url = database_url or get_database_url()

    if is_production_env() and _is_sqlite(url):
        raise RuntimeError(
            "PRODUCTION GUARDRAIL: SQLite is not supported in production. "
            "Set DATABASE_URL to a PostgreSQL connection string."
        )

    connect_args: dict[str, Any] = {}
    if _is_sqlite(url):
        connect_args["check_same_thread"] = False

    pool_mode = os.getenv("TALLY_DB_POOL", "nullpool").lower()

    if pool_mode == "nullpool":
        engine = create_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    elif pool_mode == "queuepool":
        pool_size = int(os.getenv("TALLY_DB_POOL_SIZE", "5"))
        max_overflow = int(os.getenv("TALLY_DB_MAX_OVERFLOW", "10"))
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            connect_args=connect_args,
        )
    else:
        raise ValueError(
            f"Invalid TALLY_DB_POOL value: {pool_mode}. "
            "Must be 'nullpool' or 'queuepool'."
        )

    # DO NOT log full URL with password
    logger.debug(
        "Database engine created: pool=%s, url=%s",
        engine.pool.__class__.__name__,
        _mask_password(url),
    )

    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """
    Build SQLAlchemy sessionmaker.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        sessionmaker instance configured with autocommit=False, autoflush=False.
    """
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
