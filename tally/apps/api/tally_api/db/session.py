"""Database session management.

Uses the unified engine builder (SSOT) with NullPool default.
"""

from typing import Generator

from sqlalchemy.orm import Session

from tally_api.db.engine import build_engine, build_sessionmaker

# Production fail-fast lives in config.env.get_database_url()
engine = build_engine()

# Create session factory
SessionLocal = build_sessionmaker(engine)


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Yields:
        Session: SQLAlchemy session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
