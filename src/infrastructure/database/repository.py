"""Repository over one collection of schemaless documents.

Documents are exposed as plain dicts: the client payload plus ``_id`` (the
document's UUID as a string), ``created_at`` and ``updated_at``. Those three
keys are reserved; when a client sends them in a payload they are ignored.
"""

import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import delete as sql_delete
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from src.core.constants import RESOURCE_ID_FIELD
from src.core.exceptions import CastError, NotFoundError
from src.core.logging import get_logger
from src.core.observability import trace_operation
from src.core.types import Document as DocumentDict
from src.infrastructure.database.base import Document, utc_now
from src.infrastructure.database.session import session_scope

DEFAULT_PAGINATION_LIMIT = 100

RESERVED_FIELDS = frozenset({RESOURCE_ID_FIELD, "created_at", "updated_at"})

# (field, descending) pairs, most significant first
type SortSpec = Sequence[tuple[str, bool]]


def parse_document_id(value: str) -> uuid.UUID:
    """Parse a client-supplied document id.

    Args:
        value: The raw ``_id`` value.

    Returns:
        uuid.UUID: The parsed identifier.

    Raises:
        CastError: If the value is not a UUID.
    """
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise CastError(value, RESOURCE_ID_FIELD, "UUID", cause=e) from e


def serialize(document: Document) -> DocumentDict:
    """Render a stored document the way clients see it."""
    return {
        RESOURCE_ID_FIELD: str(document.id),
        **document.data,
        "created_at": document.created_at,
        "updated_at": document.updated_at,
    }


def _payload(data: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key not in RESERVED_FIELDS}


def _sort_column(field: str) -> ColumnElement[Any]:
    if field == RESOURCE_ID_FIELD:
        return Document.id
    if field == "created_at":
        return Document.created_at
    if field == "updated_at":
        return Document.updated_at
    return Document.data[field]


class DocumentRepository:
    """CRUD operations on the documents of one collection.

    Each operation runs in its own session, committed when it succeeds.

    Args:
        session_factory: Factory sessions are opened from.
        collection: Name of the collection, e.g. ``"person"``.
    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession], collection: str
    ) -> None:
        self.session_factory = session_factory
        self.collection = collection
        self._log = get_logger("Database").bind(collection=collection)

    async def _load(self, session: AsyncSession, document_id: str) -> Document:
        key = parse_document_id(document_id)
        stmt = select(Document).where(
            Document.collection == self.collection, Document.id == key
        )
        result = await session.execute(stmt)
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundError(
                f"No {self.collection} with {RESOURCE_ID_FIELD} {document_id}",
                context={"collection": self.collection, "id": document_id},
            )
        return document

    async def find(
        self,
        skip: int = 0,
        limit: int = DEFAULT_PAGINATION_LIMIT,
        sort: SortSpec = (),
    ) -> list[DocumentDict]:
        """List documents of the collection.

        Args:
            skip: Number of documents to skip.
            limit: Maximum number of documents to return.
            sort: Fields to order by; documents are otherwise returned in
                creation order.

        Returns:
            list[DocumentDict]: The serialized documents.
        """
        self._log.debug(
            "Finding documents - skip: {}, limit: {}, sort: {}", skip, limit, sort
        )

        order_by = [
            _sort_column(field).desc() if descending else _sort_column(field).asc()
            for field, descending in sort
        ]
        order_by.extend((Document.created_at.asc(), Document.id.asc()))

        stmt = (
            select(Document)
            .where(Document.collection == self.collection)
            .order_by(*order_by)
            .offset(skip)
            .limit(limit)
        )
        with trace_operation("document.find", collection=self.collection):
            async with session_scope(self.session_factory) as session:
                result = await session.execute(stmt)
                documents = [
                    serialize(document) for document in result.scalars().all()
                ]

        self._log.debug("Found {} documents", len(documents))
        return documents

    async def count(self) -> int:
        """Count the documents of the collection."""
        stmt = (
            select(func.count())
            .select_from(Document)
            .where(Document.collection == self.collection)
        )
        async with session_scope(self.session_factory) as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def get(self, document_id: str) -> DocumentDict:
        """Fetch one document.

        Raises:
            CastError: If ``document_id`` is not a UUID.
            NotFoundError: If the collection holds no such document.
        """
        async with session_scope(self.session_factory) as session:
            return serialize(await self._load(session, document_id))

    async def create(self, data: Mapping[str, Any]) -> DocumentDict:
        """Store a new document.

        Args:
            data: The client payload.

        Returns:
            DocumentDict: The stored document, with its assigned ``_id``.
        """
        document = Document(
            id=uuid.uuid4(),
            collection=self.collection,
            data=_payload(data),
            created_at=utc_now(),
            updated_at=utc_now(),
        )
        with trace_operation("document.create", collection=self.collection):
            async with session_scope(self.session_factory) as session:
                session.add(document)
                await session.flush()

        self._log.info("Created document {}", document.id)
        return serialize(document)

    async def update(self, document_id: str, data: Mapping[str, Any]) -> DocumentDict:
        """Merge fields into an existing document.

        Raises:
            CastError: If ``document_id`` is not a UUID.
            NotFoundError: If the collection holds no such document.
        """
        async with session_scope(self.session_factory) as session:
            document = await self._load(session, document_id)
            # Reassigned so the JSON column is flagged as modified
            document.data = {**document.data, **_payload(data)}
            document.updated_at = utc_now()
            await session.flush()

        self._log.info("Updated document {} - fields: {}", document.id, list(data))
        return serialize(document)

    async def replace(self, document_id: str, data: Mapping[str, Any]) -> DocumentDict:
        """Replace the whole payload of an existing document.

        Raises:
            CastError: If ``document_id`` is not a UUID.
            NotFoundError: If the collection holds no such document.
        """
        async with session_scope(self.session_factory) as session:
            document = await self._load(session, document_id)
            document.data = _payload(data)
            document.updated_at = utc_now()
            await session.flush()

        self._log.info("Replaced document {}", document.id)
        return serialize(document)

    async def delete(self, document_id: str) -> None:
        """Delete a document.

        Raises:
            CastError: If ``document_id`` is not a UUID.
            NotFoundError: If the collection holds no such document.
        """
        key = parse_document_id(document_id)
        stmt = sql_delete(Document).where(
            Document.collection == self.collection, Document.id == key
        )
        async with session_scope(self.session_factory) as session:
            result = await session.execute(stmt)
            deleted = (result.rowcount or 0) > 0

        if not deleted:
            raise NotFoundError(
                f"No {self.collection} with {RESOURCE_ID_FIELD} {document_id}",
                context={"collection": self.collection, "id": document_id},
            )
        self._log.info("Deleted document {}", key)
