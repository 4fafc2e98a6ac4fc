# storefront/database.py

from sqlalchemy import Column, DateTime, event
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool

from storefront.core.config import get_settings
from storefront.core.utils import utcnow

Base = declarative_base()


class TimestampMixin:
    """created_at / updated_at, stamped by stamp_audit_fields on every flush."""
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


@event.listens_for(Session, "before_flush")
def stamp_audit_fields(session, flush_context, instances):
    """Stamp audit timestamps on new and modified TimestampMixin rows."""
    now = utcnow()
    for obj in session.new:
        if isinstance(obj, TimestampMixin):
            if obj.created_at is None:
                obj.created_at = now
            obj.updated_at = now
    for obj in session.dirty:
        if isinstance(obj, TimestampMixin) and session.is_modified(obj, include_collections=False):
            obj.updated_at = now


def normalise_database_url(database_url: str) -> str:
    # Convert postgresql:// to postgresql+asyncpg:// for async support
    if database_url.startswith('postgresql://'):
        return database_url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    if database_url.startswith('sqlite://'):
        return database_url.replace('sqlite://', 'sqlite+aiosqlite://', 1)
    return database_url


def configure_sqlite_engine(engine: AsyncEngine) -> AsyncEngine:
    """
    Let SQLite honour SAVEPOINT and serialize writers.

    pysqlite's own transaction handling gets in the way of nested transactions,
    so we switch it off and emit BEGIN IMMEDIATE ourselves. IMMEDIATE takes the
    write lock up front, which is how concurrent checkouts serialize on SQLite.
    """
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    database_url = normalise_database_url(database_url)
    if not database_url:
        raise ValueError("DATABASE_URL is not set in environment variables")

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        kwargs = {"echo": echo}
        if url.database in (None, "", ":memory:"):
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        return configure_sqlite_engine(create_async_engine(database_url, **kwargs))

    settings = get_settings()
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


settings = get_settings()

engine = build_engine(settings.DATABASE_URL)

async_session = build_sessionmaker(engine)

