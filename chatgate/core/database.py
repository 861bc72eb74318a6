"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (SQLite)
- Table definitions for the policy engine
"""
from typing import Optional
from contextlib import contextmanager
import logging
import os

from sqlalchemy import (
    create_engine,
    event,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Boolean,
    Float,
    JSON,
    Text,
    Index,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.sql import func

from chatgate.core.config import settings

logger = logging.getLogger("chatgate")


# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Seconds a SQLite writer waits for a competing write lock
SQLITE_BUSY_TIMEOUT = 30

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine(database_url: Optional[str] = None) -> Engine:
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if _engine is not None:
        _engine.dispose()

    if _is_sqlite(url):
        _engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
            echo=False,
        )
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        _engine = create_engine(
            url,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
            echo=False,  # Set to True for SQL query logging
        )

    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )
    logger.info("[db] engine initialized", extra={"dialect": _engine.dialect.name})

    return _engine


def get_engine() -> Engine:
    """Get the current SQLAlchemy engine."""
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Commits on clean exit, rolls back on any exception.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def insert_ignoring_conflicts(session: Session, table: Table, values: dict, conflict_columns: list[str]) -> None:
    """INSERT a row unless a row with the same conflict key already exists.

    Uses the dialect's native ``ON CONFLICT DO NOTHING`` so that two
    concurrent callers can race on creating the same row without either
    failing.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    else:
        raise NotImplementedError(f"insert_ignoring_conflicts is not supported on {dialect}")
    stmt = dialect_insert(table).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
    session.execute(stmt)


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


# Subscription types (the tier registry)
subscription_types = Table(
    'subscription_types',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('name', String(200), nullable=False),
    Column('description', Text, nullable=True),
    Column('price', Float, nullable=False, server_default='0'),
    # -1 means unlimited
    Column('max_messages_per_day', Integer, nullable=False),
    Column('available_model_ids', JSON, nullable=False),
    Column('is_active', Boolean, nullable=False, server_default='1'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    CheckConstraint('max_messages_per_day >= -1', name='ck_subscription_types_max_messages'),
    Index('idx_subscription_types_is_active', 'is_active'),
)

# Users (owned by the identity subsystem)
users = Table(
    'app_users',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('email', String(320), nullable=True, unique=True),
    Column('display_name', Text, nullable=True),
    Column('is_admin', Boolean, nullable=False, server_default='0'),
    Column('subscription_type_id', Integer, ForeignKey('subscription_types.id'), nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Index for delete-while-referenced checks
    Index('idx_app_users_subscription_type', 'subscription_type_id'),
)

# Per-user daily message counters
quota_counters = Table(
    'quota_counters',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id', ondelete='CASCADE'), nullable=False),
    # UTC calendar day the counter belongs to
    Column('window_start', Date, nullable=False),
    Column('count', Integer, nullable=False, server_default='0'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    UniqueConstraint('user_id', 'window_start', name='uq_quota_counters_user_window'),
    # Index for retention pruning
    Index('idx_quota_counters_window_start', 'window_start'),
)

# Chats
chats = Table(
    'chats',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), ForeignKey('app_users.user_id', ondelete='CASCADE'), nullable=False),
    Column('title', Text, nullable=False),
    Column('model', String(100), nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_chats_user_created', 'user_id', 'created_at'),
)

# Chat messages
chat_messages = Table(
    'chat_messages',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('chat_id', String(100), ForeignKey('chats.id', ondelete='CASCADE'), nullable=False),
    Column('role', String(20), nullable=False),  # 'user', 'assistant'
    Column('content', Text, nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_chat_messages_chat_created', 'chat_id', 'created_at'),
)

# Admin audit log
admin_audit = Table(
    'admin_audit',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('actor', String(100), nullable=False),  # admin user_id
    Column('action', String(100), nullable=False),  # "create_subscription_type", "update_user", etc.
    Column('target_resource', String(200), nullable=True),  # "subscription_type:3", "user:abc"
    Column('payload_json', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_admin_audit_actor', 'actor'),
    Index('idx_admin_audit_action', 'action'),
    Index('idx_admin_audit_created_at', 'created_at'),
)
