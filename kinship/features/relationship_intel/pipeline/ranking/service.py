"""
Dormant relationship ranking - read-only view over scored relationships.
"""

from datetime import UTC, datetime

from kinship.config import settings
from kinship.features.relationship_intel.domain import DormantRelationship
from kinship.features.relationship_intel.identity import fallback_display_name
from kinship.features.relationship_intel.pipeline.scoring import whole_days_between
from kinship.features.relationship_intel.repository import RelationshipRepository
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DormancyRanker:
    """
    Surfaces relationships that used to be active and have gone quiet.

    Closer relationships (higher avg_per_month) come first; within the same
    cadence the longest silence wins. Relationships at or below the health
    floor barely existed and are left out.
    """

    def __init__(self, repository=RelationshipRepository):
        self._repository = repository

    async def rank(
        self,
        min_days_since: int | None = None,
        min_total_sent: int | None = None,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> list[DormantRelationship]:
        min_days_since = settings.DORMANT_MIN_DAYS if min_days_since is None else min_days_since
        min_total_sent = (
            settings.DORMANT_MIN_TOTAL_SENT if min_total_sent is None else min_total_sent
        )
        limit = settings.DORMANT_LIMIT if limit is None else limit
        if min_days_since < 0 or min_total_sent < 0:
            raise ValueError("min_days_since and min_total_sent must be non-negative")

        limit = min(limit, settings.DORMANT_MAX_LIMIT)
        if limit <= 0:
            return []

        now = now or datetime.now(UTC)
        health_floor = settings.DORMANT_HEALTH_FLOOR

        rows = await self._repository.query_dormant(
            min_days_since=min_days_since,
            min_total_sent=min_total_sent,
            health_floor=health_floor,
            now=now,
            limit=limit,
        )

        candidates = [self._row_to_entry(row, now) for row in rows]
        ranked = sorted(
            (
                entry
                for entry in candidates
                if entry.days_since_last_contact >= min_days_since
                and entry.total_sent >= min_total_sent
                and entry.health_score > health_floor
            ),
            key=lambda entry: (-entry.avg_per_month, -entry.days_since_last_contact),
        )[:limit]

        logger.info(
            "Dormant relationships ranked",
            min_days_since=min_days_since,
            min_total_sent=min_total_sent,
            limit=limit,
            returned=len(ranked),
        )
        return ranked

    @staticmethod
    def _row_to_entry(row: dict, now: datetime) -> DormantRelationship:
        last_contact_at = row.get("last_contact_at")
        days = row.get("days_since_last_contact")
        if days is None and last_contact_at is not None:
            days = whole_days_between(last_contact_at, now)

        return DormantRelationship(
            name=row.get("display_name") or fallback_display_name(row["counterpart_key"]),
            counterpart_key=row["counterpart_key"],
            days_since_last_contact=days or 0,
            health_score=float(row.get("health_score") or 0.0),
            avg_per_month=float(row.get("avg_per_month") or 0.0),
            total_sent=row.get("total_sent") or 0,
            last_subject=row.get("last_subject"),
            last_contact_at=last_contact_at,
        )


dormancy_ranker = DormancyRanker()
