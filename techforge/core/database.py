"""
Database configuration and connection management.

This module provides:
- Table definitions for profiles, licenses and affiliate events
- A Database object owning one engine and its session factory
- Connection pooling with sane defaults and bounded timeouts
- Translation of driver failures into UpstreamError
"""
from typing import Optional, Iterator
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Numeric, Index, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.sql import func
import os

from techforge.core.config import Settings, settings as default_settings
from techforge.core.errors import UpstreamError


# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 5
MAX_OVERFLOW = 10
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

REQUIRED_TABLES = ("profiles", "licenses", "affiliate_events")


# Customer profiles, upserted by email (or user_id for a first checkout)
profiles = Table(
    'profiles',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=True, unique=True),
    Column('email', String(255), nullable=False, unique=True),
    Column('plan', String(20), nullable=False, server_default='free'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Issued licenses; source_event_id is the fulfillment idempotency key
licenses = Table(
    'licenses',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('license_key', String(64), nullable=False, unique=True),
    Column('email', String(255), nullable=False),
    Column('plan', String(20), nullable=False),
    Column('status', String(20), nullable=False, server_default='active'),
    Column('source_event_id', String(255), nullable=True, unique=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('revoked_at', DateTime(timezone=True), nullable=True),
    Index('idx_licenses_email', 'email'),
)

# Append-only commission ledger
affiliate_events = Table(
    'affiliate_events',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('affiliate_code', String(100), nullable=False),
    Column('email', String(255), nullable=False),
    Column('plan', String(20), nullable=False),
    Column('amount', Numeric(12, 2), nullable=False),
    Column('commission', Numeric(12, 2), nullable=False),
    Column('source_event_id', String(255), nullable=False, unique=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_affiliate_events_code', 'affiliate_code'),
)


def get_database_url(settings_obj: Optional[Settings] = None) -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    cfg = settings_obj or default_settings
    return cfg.DATABASE_URL


def _engine_options(url: str, timeout: float) -> dict:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False, "timeout": timeout}}
        if ":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            options["poolclass"] = StaticPool
        return options

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args["connect_timeout"] = int(timeout)

    return {
        "poolclass": QueuePool,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": timeout,
        "pool_recycle": POOL_RECYCLE,
        "pool_pre_ping": True,
        "connect_args": connect_args,
    }


class Database:
    """
    One engine plus its session factory.

    Constructed once at startup and injected into the stores; nothing in the
    package reaches for a module-level engine.
    """

    def __init__(self, url: str, *, timeout: float = 10.0, echo: bool = False):
        if not url:
            raise ValueError(
                "DATABASE_URL is not configured. "
                "Set DATABASE_URL in environment or .env file."
            )
        self.url = url
        self.engine: Engine = create_engine(url, echo=echo, **_engine_options(url, timeout))
        self._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
        )

    @classmethod
    def from_settings(cls, settings_obj: Optional[Settings] = None) -> "Database":
        cfg = settings_obj or default_settings
        return cls(get_database_url(cfg), timeout=cfg.UPSTREAM_TIMEOUT_SECONDS)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Transactional session scope.

        Commits on success and rolls back on any exception. IntegrityError is
        re-raised untouched so callers can resolve uniqueness races; every
        other driver error becomes UpstreamError.

        Usage:
            with db.session() as session:
                session.execute(...)
        """
        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except IntegrityError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise UpstreamError("database", str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def scope(self, session: Optional[Session] = None) -> Iterator[Session]:
        """Join the caller's transaction when given one, otherwise open a new one."""
        if session is not None:
            yield session
            return
        with self.session() as own:
            yield own

    def create_all_tables(self) -> None:
        """
        Create all tables defined in metadata.

        This is idempotent - tables that already exist will not be recreated.
        """
        metadata.create_all(bind=self.engine)

    def drop_all_tables(self) -> None:
        """
        Drop all tables defined in metadata.

        WARNING: This is destructive! Only use in tests or development.
        """
        metadata.drop_all(bind=self.engine)

    def check_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def missing_tables(self) -> list:
        inspector = inspect(self.engine)
        return [name for name in REQUIRED_TABLES if not inspector.has_table(name)]

    def dispose(self) -> None:
        self.engine.dispose()
