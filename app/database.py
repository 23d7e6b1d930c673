from typing import Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from app.core.config import settings

T = TypeVar("T")

# Support both PostgreSQL and SQLite via centralized settings
DATABASE_URL = settings.database_url

if DATABASE_URL.startswith("postgresql"):
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)
elif ":memory:" in DATABASE_URL:
    # A single shared connection keeps the in-memory schema alive across sessions
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
else:
    # SQLite configuration for local development/testing
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False}
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Session Provider: Provides a database session per request.
    Transaction management is handled explicitly in the Service Layer.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_in_transaction(db: Session, work: Callable[[Session], T]) -> T:
    """
    Unit of work: run `work` with the session and commit once it returns.
    Any exception rolls back every statement issued by `work` and is re-raised.
    """
    try:
        result = work(db)
        db.commit()
        return result
    except Exception:
        db.rollback()
        raise


def init_db(bind=None):
    """
    Registers all domain models and initializes the database schema.
    This should be called during the application startup lifespan.
    """
    # Import all models to ensure they are registered with Base.metadata before create_all
    from app.models import (  # noqa: F401
        user, company, job_seeker, schedule, notification
    )
    # Perform schema emission
    Base.metadata.create_all(bind=bind or engine)
