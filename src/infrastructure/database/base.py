"""SQLAlchemy declarative base and the document model.

Resources are schemaless: every resource collection (people, roles,
organizations...) lives in the single ``documents`` table, keyed by a UUID
and tagged with its collection name. The payload is stored as JSONB so
documents can be sorted by any of their fields.

Key components:
- **Naming conventions**: Standardized constraint names
- **Base class**: Configured declarative base with metadata
- **BaseModel**: Abstract model with common fields (id, timestamps)
- **Document**: The stored resource
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, MetaData, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.infrastructure.constants import COLLECTION_NAME_MAX_LENGTH, NAMING_CONVENTION


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base with naming conventions."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class BaseModel(Base):
    """Abstract base model with common fields for all database models.

    This model provides:
    - Random UUID primary key, assigned client-side so it is known before flush
    - created_at timestamp
    - updated_at timestamp (updates on modification)
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="Primary key, exposed to clients as _id",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
        doc="Timestamp when the record was created (UTC)",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
        doc="Timestamp when the record was last updated (UTC)",
    )

    def __repr__(self) -> str:
        """Return a string showing the model class name and ID."""
        return f"<{self.__class__.__name__}(id={self.id})>"


class Document(BaseModel):
    """A schemaless JSON document belonging to one resource collection."""

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(
        String(COLLECTION_NAME_MAX_LENGTH),
        index=True,
        nullable=False,
        doc="Name of the resource collection, e.g. 'person'",
    )

    data: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
        doc="Client-supplied payload",
    )

    def __repr__(self) -> str:
        """Return a string showing the collection and ID."""
        return f"<Document(collection={self.collection!r}, id={self.id})>"
