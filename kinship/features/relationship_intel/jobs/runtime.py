"""
Shared setup for the relationship intelligence jobs.
"""

import asyncio
import signal
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

from kinship.db.pool import db_pool
from kinship.db.schema import ensure_schema
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def store_session() -> AsyncGenerator[None, None]:
    """Open the pool and make sure the schema exists for the lifetime of a job."""
    await db_pool.initialize()
    try:
        await ensure_schema()
        yield
    finally:
        await db_pool.close()


def install_stop_handlers(on_stop: Callable[[], None]) -> None:
    """Route SIGINT/SIGTERM to a graceful stop instead of killing the run mid-page."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_stop)
        except NotImplementedError:
            logger.debug("Signal handlers not supported on this platform", signal=sig.name)
            return
