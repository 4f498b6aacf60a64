"""Document persistence on async PostgreSQL.

Core components:
- **base**: Declarative base and the ``Document`` model
- **session**: Engine creation, session scope and slow query logging
- **repository**: CRUD operations on one collection of documents
- **database**: The ``Database`` handle shared by the application

All database operations are async, through the asyncpg driver.
"""

from src.infrastructure.database.base import Base, BaseModel, Document
from src.infrastructure.database.database import Database
from src.infrastructure.database.repository import DocumentRepository
from src.infrastructure.database.session import (
    create_database_engine,
    create_session_factory,
    session_scope,
)

__all__ = [
    "Base",
    "BaseModel",
    "Database",
    "Document",
    "DocumentRepository",
    "create_database_engine",
    "create_session_factory",
    "session_scope",
]
