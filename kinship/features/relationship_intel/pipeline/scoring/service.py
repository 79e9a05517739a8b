"""
Relationship health scoring - batch pass over every relationship.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import UTC, datetime

from kinship.features.relationship_intel.domain import RelationshipScore, ScoreInput
from kinship.features.relationship_intel.repository import RelationshipRepository
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400
AVG_PER_MONTH_FLOOR_DAYS = 30
FREQUENCY_FLOOR_DAYS = 1

MIN_HEALTH_SCORE = 5.0
MAX_HEALTH_SCORE = 100.0


@dataclass(slots=True)
class ScoringResult:
    relationships_scored: int
    duration_seconds: float
    scored_at: datetime


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Elapsed whole days, never negative."""
    seconds = (later - earlier).total_seconds()
    return max(0, math.floor(seconds / SECONDS_PER_DAY))


def recency_points(days_since_last_contact: int) -> int:
    if days_since_last_contact <= 7:
        return 50
    if days_since_last_contact <= 30:
        return 35
    if days_since_last_contact <= 90:
        return 20
    if days_since_last_contact <= 180:
        return 10
    return 0


def frequency_points(total_sent: int) -> int:
    if total_sent >= 50:
        return 30
    if total_sent >= 20:
        return 25
    if total_sent >= 10:
        return 20
    if total_sent >= 5:
        return 15
    if total_sent >= 2:
        return 10
    return 5


def consistency_points(avg_per_month: float) -> int:
    if avg_per_month >= 4:
        return 20
    if avg_per_month >= 2:
        return 15
    if avg_per_month >= 1:
        return 10
    if avg_per_month >= 0.5:
        return 5
    return 0


def score_relationship(relationship: ScoreInput, now: datetime) -> RelationshipScore:
    """
    Derive recency, cadence and the composite health score for one relationship.

    avg_per_month floors the observed span at 30 days and frequency at 1 day,
    so a relationship first seen today does not produce a spike.
    """
    count = relationship.total_sent
    days_since_last = whole_days_between(relationship.last_contact_at, now)
    days_since_first = whole_days_between(relationship.first_contact_at, now)

    avg_per_month = count * 30 / max(days_since_first, AVG_PER_MONTH_FLOOR_DAYS)
    frequency = count / max(days_since_first, FREQUENCY_FLOOR_DAYS)

    health_score = float(
        recency_points(days_since_last)
        + frequency_points(count)
        + consistency_points(avg_per_month)
    )

    return RelationshipScore(
        id=relationship.id,
        days_since_last_contact=days_since_last,
        avg_per_month=round(avg_per_month, 4),
        frequency=round(frequency, 6),
        health_score=min(MAX_HEALTH_SCORE, max(MIN_HEALTH_SCORE, health_score)),
    )


class ScoringService:
    """Recomputes the derived fields of every relationship from persisted rows."""

    def __init__(self, repository=RelationshipRepository):
        self._repository = repository

    async def recompute_scores(self, now: datetime | None = None) -> ScoringResult:
        now = now or datetime.now(UTC)
        started = time.monotonic()

        inputs = await self._repository.fetch_score_inputs()
        scores = [score_relationship(item, now) for item in inputs]
        updated = await self._repository.update_scores(scores, now)

        result = ScoringResult(
            relationships_scored=updated,
            duration_seconds=round(time.monotonic() - started, 3),
            scored_at=now,
        )

        logger.info(
            "Relationship scores recomputed",
            relationships_scored=result.relationships_scored,
            duration_seconds=result.duration_seconds,
            mean_health_score=(
                round(sum(s.health_score for s in scores) / len(scores), 2) if scores else None
            ),
        )
        return result


scoring_service = ScoringService()
