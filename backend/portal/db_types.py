"""Custom SQLAlchemy column types for multi-database compatibility."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.dialects import postgresql
from sqlalchemy.types import CHAR, TypeDecorator


class GUID(TypeDecorator):
    """Platform-independent GUID/UUID type.

    Stores UUID values as ``UUID`` in PostgreSQL (the hosted database uses
    ``gen_random_uuid()`` keys everywhere) and as 36-character strings
    elsewhere. Values are normalised to strings when read so services and
    schemas can treat identifiers as plain text.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        if dialect.name == "postgresql":
            if isinstance(value, uuid.UUID):
                return value
            return uuid.UUID(str(value))
        return str(value)

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return str(value)


def new_id() -> str:
    """Primary key default matching what :class:`GUID` returns on read."""

    return str(uuid.uuid4())
