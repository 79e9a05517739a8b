"""
Relationship intelligence routes.

Read-only surface for the UI: processing status and the dormant list.
"""

from fastapi import APIRouter, HTTPException, Query, status

from kinship.config import settings
from kinship.db.helpers import DatabaseError
from kinship.features.relationship_intel.domain import (
    STATUS_COMPLETED,
    ProcessingCheckpoint,
)
from kinship.features.relationship_intel.pipeline.ranking import dormancy_ranker
from kinship.features.relationship_intel.repository import (
    CheckpointRepository,
    RelationshipRepository,
)
from kinship.infrastructure.observability.logging import get_logger

from .schemas import (
    DormantListResponse,
    DormantRelationshipResponse,
    ProcessingStatusResponse,
    StatusOverviewResponse,
    StoreTotalsResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/relationships", tags=["relationships"])


def _checkpoint_to_response(checkpoint: ProcessingCheckpoint) -> ProcessingStatusResponse:
    return ProcessingStatusResponse(
        run_type=checkpoint.run_type,
        status=checkpoint.status,
        records_processed=checkpoint.records_processed,
        window_cursor=checkpoint.window_cursor,
        history_start=checkpoint.history_start,
        started_at=checkpoint.started_at,
        ended_at=checkpoint.ended_at,
        updated_at=checkpoint.updated_at,
        error_message=checkpoint.error_message,
        is_partial=checkpoint.status != STATUS_COMPLETED,
    )


@router.get("/status", response_model=StatusOverviewResponse)
async def get_processing_status(
    run_type: str | None = Query(None, description="Limit to a single run type"),
):
    """Latest checkpoint per run type, plus store totals."""
    try:
        if run_type:
            checkpoint = await CheckpointRepository.load_latest(run_type)
            runs = (
                [_checkpoint_to_response(checkpoint)]
                if checkpoint
                else [ProcessingStatusResponse(run_type=run_type, status="idle")]
            )
        else:
            checkpoints = await CheckpointRepository.list_latest_per_run_type()
            runs = [_checkpoint_to_response(checkpoint) for checkpoint in checkpoints]

        totals = await RelationshipRepository.fetch_store_totals()

    except DatabaseError as e:
        logger.error("Error reading processing status", run_type=run_type, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Relationship store unavailable",
        )

    return StatusOverviewResponse(runs=runs, totals=StoreTotalsResponse(**totals))


@router.get("/dormant", response_model=DormantListResponse)
async def list_dormant_relationships(
    min_days_since: int = Query(settings.DORMANT_MIN_DAYS, ge=0),
    min_total_sent: int = Query(settings.DORMANT_MIN_TOTAL_SENT, ge=0),
    limit: int = Query(settings.DORMANT_LIMIT, ge=1, le=settings.DORMANT_MAX_LIMIT),
):
    """Relationships worth reconnecting with, closest first."""
    try:
        ranked = await dormancy_ranker.rank(
            min_days_since=min_days_since,
            min_total_sent=min_total_sent,
            limit=limit,
        )
    except DatabaseError as e:
        logger.error("Error ranking dormant relationships", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Relationship store unavailable",
        )

    return DormantListResponse(
        relationships=[
            DormantRelationshipResponse(
                name=entry.name,
                counterpart_key=entry.counterpart_key,
                days_since_last_contact=entry.days_since_last_contact,
                health_score=entry.health_score,
                avg_per_month=entry.avg_per_month,
                total_sent=entry.total_sent,
                last_subject=entry.last_subject,
                last_contact_at=entry.last_contact_at,
            )
            for entry in ranked
        ],
        total_count=len(ranked),
        min_days_since=min_days_since,
        min_total_sent=min_total_sent,
        limit=limit,
    )
