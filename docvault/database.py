"""Engine, session factory and declarative base for the vault's tables.

The URL comes from ``settings.database_url``. SQLite serves development
and the test suite; PostgreSQL is the production target and the only
backend where row locks (``SELECT ... FOR UPDATE``) take effect.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .core.config import settings

DATABASE_URL = settings.database_url


def _sqlite_engine(url: str) -> Engine:
    # A 30s busy timeout lets concurrent redemptions queue on the writer lock.
    sqlite_engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        # Off by default per connection; the ON DELETE rules depend on it.
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


def _pooled_engine(url: str) -> Engine:
    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,
    )


engine = _sqlite_engine(DATABASE_URL) if DATABASE_URL.startswith("sqlite") else _pooled_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Create missing tables. Existing tables are left as they are."""
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    """Request-scoped session for ``Depends``.

    An exception escaping the route rolls back whatever the route left
    pending before the session is closed.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
