"""The persistence handle shared by every request.

``Database`` owns the engine and the session factory. Handlers never touch
sessions directly; they ask for a collection with ``model(name)`` and use the
returned repository.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from src.core.config import DatabaseConfig
from src.core.logging import get_logger
from src.infrastructure.database.base import Base
from src.infrastructure.database.repository import DocumentRepository
from src.infrastructure.database.session import (
    create_database_engine,
    create_session_factory,
)


class Database:
    """Engine, session factory and per-collection repositories.

    Args:
        config: Database configuration.
        engine: Ready-made engine, mainly for tests. Built from ``config``
            when omitted.
    """

    def __init__(
        self, config: DatabaseConfig, engine: AsyncEngine | None = None
    ) -> None:
        self.config = config
        self.engine = engine or create_database_engine(config)
        self.session_factory = create_session_factory(self.engine)
        self._repositories: dict[str, DocumentRepository] = {}
        self._log = get_logger("Database")

    def model(self, name: str) -> DocumentRepository:
        """Get the repository of a collection.

        Args:
            name: Collection name, e.g. ``"person"``.

        Returns:
            DocumentRepository: Repository bound to that collection.
        """
        repository = self._repositories.get(name)
        if repository is None:
            repository = DocumentRepository(self.session_factory, name)
            self._repositories[name] = repository
        return repository

    async def ping(self) -> None:
        """Run a trivial query.

        Raises:
            SQLAlchemyError: If the database cannot be reached.
        """
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            _ = result.scalar()

    async def create_schema(self) -> None:
        """Create the tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._log.info("Database schema ensured")

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        await self.engine.dispose()
        self._log.info("Database engine disposed")
