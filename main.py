"""Main entry point for running the Civitas API server."""

import asyncio
import os
import signal

from loguru import logger

from src.api.server import Server
from src.core.config import get_settings
from src.core.logging import setup_logging
from src.core.observability import instrument_database, setup_tracing
from src.infrastructure.database import Database
from src.infrastructure.identity import IdentityClient
from src.infrastructure.storage import create_storage


async def serve() -> None:
    """Build the collaborators, listen, and shut down cleanly on a signal."""
    settings = get_settings()

    # Setup logging first
    setup_logging(settings)
    setup_tracing(settings)

    database = Database(settings.database_config)
    instrument_database(database.engine, settings)
    await database.create_schema()

    server = Server(
        settings,
        logger,
        database=database,
        identity=IdentityClient(settings.identity_config),
        storage=create_storage(settings.storage_config),
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    # Container platforms set PORT to the port the service should listen on
    port = int(os.environ.get("PORT", settings.server.port))

    try:
        await server.listen(port)
        stopped = asyncio.create_task(stop.wait())
        listener = asyncio.create_task(server.wait())
        await asyncio.wait({stopped, listener}, return_when=asyncio.FIRST_COMPLETED)
        stopped.cancel()
    finally:
        await server.close()
        await database.close()


def main() -> None:
    """Main entry point for the Civitas application."""
    asyncio.run(serve())


if __name__ == "__main__":
    main()
