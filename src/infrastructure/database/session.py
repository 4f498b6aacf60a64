"""Async database engine and session lifecycle management.

Core functionality:
- **Connection pooling**: Configurable pool with overflow and recycling
- **Session scope**: Commit on success, rollback on error, always close
- **Query monitoring**: Optional slow query detection through engine events

Advanced features:
- **Pool pre-ping**: Validates connections before use
- **Connection recycling**: Prevents stale connections (1-hour default)
- **Command timeout**: Prevents hanging queries (60-second default)
- **Weak references**: Memory-efficient query timing storage
- **Sanitized logging**: Secure parameter logging for debugging
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from weakref import WeakKeyDictionary

from loguru import logger
from sqlalchemy import event
from sqlalchemy.engine import Connection
from sqlalchemy.engine.interfaces import DBAPICursor, ExecutionContext
from sqlalchemy.exc import ArgumentError, InvalidRequestError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.core.config import DatabaseConfig
from src.core.context import RequestContext
from src.core.error_context import sanitize_sql_params
from src.infrastructure.constants import (
    COMMAND_TIMEOUT_SECONDS,
    MAX_LOGGED_STATEMENT_LENGTH,
    POOL_RECYCLE_SECONDS,
)

_log = logger.bind(context="Database")

# Store query start times for execution contexts
_query_start_times: WeakKeyDictionary[ExecutionContext, float] = WeakKeyDictionary()


def _before_cursor_execute(
    _conn: Connection,
    _cursor: DBAPICursor,
    _statement: str,
    _parameters: dict[str, Any] | list[Any] | tuple[Any, ...] | None,
    context: ExecutionContext,
    _executemany: bool,
) -> None:
    """Track query start time for performance monitoring."""
    _query_start_times[context] = time.perf_counter()


class SlowQueryListener:
    """``after_cursor_execute`` hook logging queries slower than a threshold.

    Args:
        threshold_ms: Queries taking at least this long are logged.
    """

    def __init__(self, threshold_ms: int) -> None:
        self.threshold_ms = threshold_ms

    def __call__(
        self,
        _conn: Connection,
        cursor: DBAPICursor,
        statement: str,
        parameters: dict[str, Any] | list[Any] | tuple[Any, ...] | None,
        context: ExecutionContext,
        executemany: bool,
    ) -> None:
        """Log the query if it was slow.

        Args:
            _conn: Database connection (unused).
            cursor: Database cursor, for the affected row count.
            statement: SQL statement that was executed.
            parameters: Query parameters.
            context: SQLAlchemy execution context.
            executemany: Whether this was an executemany operation.
        """
        start_time = _query_start_times.pop(context, None)
        if start_time is None:
            return

        duration_ms = (time.perf_counter() - start_time) * 1000
        if duration_ms < self.threshold_ms:
            return

        rows_affected = getattr(cursor, "rowcount", -1)
        if rows_affected is None:
            rows_affected = -1

        clean_statement = " ".join(statement.split())[:MAX_LOGGED_STATEMENT_LENGTH]
        request_id = RequestContext.get_correlation_id()

        _log.warning(
            "Slow query detected: {}... Duration: {:.2f}ms Rows: {}",
            clean_statement[:100],
            duration_ms,
            rows_affected,
            query=clean_statement,
            duration_ms=round(duration_ms, 2),
            rows_affected=rows_affected,
            parameters=sanitize_sql_params(parameters),
            executemany=executemany,
            threshold_ms=self.threshold_ms,
            **({"request_id": request_id} if request_id else {}),
        )


def create_database_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    No connection is opened until the engine is first used.

    Args:
        config: Database configuration.

    Returns:
        AsyncEngine: Configured async engine instance.
    """
    engine = create_async_engine(
        config.database_url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_pre_ping=config.pool_pre_ping,
        echo=config.echo,
        pool_recycle=POOL_RECYCLE_SECONDS,
        connect_args={
            "server_settings": {"jit": "off"},
            "command_timeout": COMMAND_TIMEOUT_SECONDS,
        },
    )

    if config.enable_slow_query_logging:
        register_slow_query_listeners(engine, config.slow_query_threshold_ms)

    _log.info(
        "Created database engine - pool_size: {}, max_overflow: {}, "
        "slow_query_logging: {}",
        config.pool_size,
        config.max_overflow,
        config.enable_slow_query_logging,
    )

    return engine


def register_slow_query_listeners(engine: AsyncEngine, threshold_ms: int) -> None:
    """Attach the query timing hooks to an engine.

    Args:
        engine: Engine whose queries are timed.
        threshold_ms: Slow query threshold in milliseconds.
    """
    try:
        # Events are emitted by the synchronous engine underneath
        event.listen(
            engine.sync_engine, "before_cursor_execute", _before_cursor_execute
        )
        event.listen(
            engine.sync_engine,
            "after_cursor_execute",
            SlowQueryListener(threshold_ms),
        )
        _log.info("Registered slow query listeners (threshold {}ms)", threshold_ms)
    except (InvalidRequestError, ArgumentError, AttributeError, TypeError) as e:
        _log.warning(
            "Failed to register slow query listeners: {}: {}",
            type(e).__name__,
            str(e),
        )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory documents are read and written through."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Open a session that commits on success and rolls back on error.

    Args:
        session_factory: Factory to open the session from.

    Yields:
        AsyncGenerator[AsyncSession]: Database session for performing operations.

    Raises:
        Exception: Any exception raised inside the block is re-raised after
            rollback.

    Example:
        async with session_scope(factory) as session:
            result = await session.execute(select(Document))
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            _log.debug("Database session rolled back due to error")
            raise
