"""
Email history ingestion job.

Runs one ingestion pass over sent Gmail history. Re-running after a stop or
failure resumes from the saved checkpoint.
"""

from kinship.config import settings
from kinship.features.relationship_intel.errors import SummarizationError
from kinship.features.relationship_intel.integrations import (
    GmailOutboundTransport,
    OpenAISummarizer,
)
from kinship.features.relationship_intel.pipeline.ingestion import (
    RUN_TYPE_EMAIL_HISTORY,
    IngestionPipeline,
    IngestionResult,
)
from kinship.infrastructure.observability.logging import get_logger

from .runtime import install_stop_handlers, store_session

logger = get_logger(__name__)


def _build_summarizer() -> OpenAISummarizer | None:
    if not settings.has_openai():
        logger.warning("OPENAI_API_KEY not set, summary tier will store subjects and excerpts")
        return None
    try:
        return OpenAISummarizer()
    except SummarizationError as e:
        logger.warning("Summarizer unavailable", error=str(e))
        return None


async def ingest_email_history() -> IngestionResult:
    """Run the email history pipeline against an already initialized store."""
    transport = GmailOutboundTransport()
    pipeline = IngestionPipeline(
        transport,
        run_type=RUN_TYPE_EMAIL_HISTORY,
        channel="email",
        summarizer=_build_summarizer(),
    )
    install_stop_handlers(pipeline.request_stop)

    try:
        return await pipeline.run()
    finally:
        await transport.close()


async def run_email_history_job() -> None:
    """Worker entry point."""
    async with store_session():
        result = await ingest_email_history()

    logger.info(
        "Email history job finished",
        status=result.status,
        records_processed=result.records_processed,
        windows_failed=result.windows_failed,
        error=result.error,
    )
