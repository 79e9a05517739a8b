"""
Message history ingestion job.

Runs one ingestion pass over a sent-message store. The store is supplied by
the caller because reading a platform message database is host specific.
"""

from kinship.features.relationship_intel.identity import DisplayNameResolver
from kinship.features.relationship_intel.integrations import MessageStore, MessageStoreTransport
from kinship.features.relationship_intel.pipeline.ingestion import (
    RUN_TYPE_MESSAGE_HISTORY,
    IngestionPipeline,
    IngestionResult,
)
from kinship.infrastructure.observability.logging import get_logger

from .history_job import _build_summarizer
from .runtime import install_stop_handlers, store_session

logger = get_logger(__name__)


async def ingest_message_history(
    store: MessageStore, resolver: DisplayNameResolver | None = None
) -> IngestionResult:
    """Run the message history pipeline against an already initialized store."""
    pipeline = IngestionPipeline(
        MessageStoreTransport(store),
        run_type=RUN_TYPE_MESSAGE_HISTORY,
        channel="message",
        summarizer=_build_summarizer(),
        resolver=resolver,
    )
    install_stop_handlers(pipeline.request_stop)
    return await pipeline.run()


async def run_message_history_job(
    store: MessageStore, resolver: DisplayNameResolver | None = None
) -> IngestionResult:
    async with store_session():
        result = await ingest_message_history(store, resolver)

    logger.info(
        "Message history job finished",
        status=result.status,
        records_processed=result.records_processed,
        windows_failed=result.windows_failed,
        error=result.error,
    )
    return result
