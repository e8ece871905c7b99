"""
core/database.py -- Shared SQLAlchemy Core schema and engine factory.

Uses SQLAlchemy Core (not ORM) so the dataclasses in each package's
models.py remain the authoritative domain representation. Every store
(credentials, organizations, tasks, audit) runs against ONE engine created
here, which lets the audit query join audit_logs to users to scope results
by the actor's organization.

SQLAlchemy provides a database-agnostic abstraction: swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Ids: organizations, users and tasks use UUID4 strings generated by their
stores. audit_logs uses an autoincrement integer, which doubles as the
insertion-order tie break when two records share a created_at timestamp.

Layer rule: core/ is the kernel. No imports from any other project package.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

metadata = MetaData()

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

organizations = Table(
    "organizations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("parent_id", String(36), index=True),  # NULL = root organization
    Column("created_at", String(32), nullable=False),
)

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="viewer"),
    Column("organization_id", String(36), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)

tasks = Table(
    "tasks",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("status", String(20), nullable=False, server_default="todo"),
    Column("category", String(20), nullable=False, server_default="other"),
    Column("sort_order", Integer, nullable=False, server_default="0"),
    Column("due_date", String(32)),
    Column("organization_id", String(36), nullable=False, index=True),
    Column("created_by_id", String(36), nullable=False),
    Column("assigned_to_id", String(36)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("actor_id", String(36), index=True),  # NULL = login attempt for an unknown username
    Column("action", String(20), nullable=False),
    Column("resource_type", String(50), nullable=False),
    Column("resource_id", String(36)),
    Column("details", Text),  # free text, human readable
    Column("ip_address", String(45)),
    Column("user_agent", Text),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def create_db_engine(db_url: str) -> Engine:
    """Create the engine shared by every store.

    check_same_thread=False is required for SQLite because FastAPI runs sync
    route handlers in a thread pool; the pool hands connections across threads.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def init_db(engine: Engine) -> None:
    """Create any missing tables. Idempotent -- safe to call on every startup."""
    metadata.create_all(engine)
