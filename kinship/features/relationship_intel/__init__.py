"""
Relationship intelligence feature package.

Everything for turning sent history into relationship health lives here:
domain models, identity normalization, repositories, the ingestion, scoring
and ranking pipeline, transport adapters, jobs and the API router.
"""

from .api.router import router as relationships_router  # noqa: F401
from .pipeline.ingestion import IngestionPipeline, IngestionResult  # noqa: F401
from .pipeline.ranking import DormancyRanker, dormancy_ranker  # noqa: F401
from .pipeline.scoring import ScoringService, scoring_service  # noqa: F401
