"""
SQLAlchemy Models for Warden Storage

Async-compatible SQLAlchemy 2.0 ORM models for:
- Policies (full JSON shape in a document column)
- Roles (role tree in a document column)

Designed to work with:
- SQLite (via aiosqlite)
- PostgreSQL (via asyncpg)
- MySQL (via aiomysql)

JSON column handling:
- PostgreSQL: Native JSONB
- SQLite/MySQL: TEXT with JSON serialization
"""

import json
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Custom Types
# =============================================================================

class JSONType(TypeDecorator):
    """
    Platform-agnostic JSON column.

    Uses JSONB on PostgreSQL, TEXT+JSON on SQLite/MySQL.
    """
    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name == "postgresql":
            return value
        return json.dumps(value, separators=(",", ":"))

    def process_result_value(self, value, dialect):
        if isinstance(value, str):
            return json.loads(value)
        return value


# =============================================================================
# Base
# =============================================================================

class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# =============================================================================
# Policy Model
# =============================================================================

class PolicyModel(Base):
    """
    Stored policy.

    The document column holds the policy JSON shape; id, description and
    effect are duplicated into columns for listing and inspection.
    """
    __tablename__ = "warden_policies"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    effect: Mapped[str] = mapped_column(String(16), nullable=False, default="deny")
    document: Mapped[dict] = mapped_column(JSONType(), nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )


# =============================================================================
# Role Model
# =============================================================================

class RoleModel(Base):
    """
    Stored role with its child roles serialized inline.
    """
    __tablename__ = "warden_roles"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    document: Mapped[dict] = mapped_column(JSONType(), nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_roles_name", "name"),
    )
