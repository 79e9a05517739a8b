"""
Standalone scoring pass, for refreshing recency without re-ingesting.
"""

from kinship.features.relationship_intel.pipeline.scoring import scoring_service
from kinship.infrastructure.observability.logging import get_logger

from .runtime import store_session

logger = get_logger(__name__)


async def run_rescore_job() -> None:
    async with store_session():
        result = await scoring_service.recompute_scores()

    logger.info(
        "Rescore job finished",
        relationships_scored=result.relationships_scored,
        duration_seconds=result.duration_seconds,
    )
