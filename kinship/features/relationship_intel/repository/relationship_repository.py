"""
Persistence layer for relationships and their communication records.

Every write is a single statement, or a single transaction when a record and
its relationship must move together, so retried or overlapping ingestion of
the same record is always safe.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

import psycopg

from kinship.db.helpers import (
    DatabaseError,
    execute_transaction,
    fetch_all,
    fetch_one,
    fetch_val,
)
from kinship.db.pool import get_db_transaction
from kinship.features.relationship_intel.domain import (
    CommunicationRecord,
    Relationship,
    RelationshipScore,
    ScoreInput,
)
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RelationshipRepositoryError(DatabaseError):
    """More specific exception for relationship store failures."""


class _DuplicateRecord(Exception):
    """Raised inside ingest_record() to roll back the relationship upsert."""


class RelationshipRepository:
    """Reads and writes for the relationships and communication_records tables."""

    RELATIONSHIP_COLUMNS = """
        id, counterpart_key, display_name, first_contact_at, last_contact_at,
        total_sent, days_since_last_contact, avg_per_month, frequency,
        health_score, scored_at
    """

    @classmethod
    def _row_to_relationship(cls, row: dict | None) -> Relationship | None:
        if not row:
            return None

        return Relationship(
            id=row["id"],
            counterpart_key=row["counterpart_key"],
            display_name=row.get("display_name"),
            first_contact_at=row["first_contact_at"],
            last_contact_at=row["last_contact_at"],
            total_sent=row["total_sent"],
            days_since_last_contact=row.get("days_since_last_contact"),
            avg_per_month=row.get("avg_per_month"),
            frequency=row.get("frequency"),
            health_score=row.get("health_score"),
            scored_at=row.get("scored_at"),
        )

    @classmethod
    async def upsert_relationship(
        cls,
        counterpart_key: str,
        display_name_hint: str | None,
        observed_at: datetime,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> Relationship:
        """
        Create the relationship on first sight, otherwise count one more send.

        last_contact_at only moves forward and first_contact_at only moves
        back, whatever order records arrive in. A null hint keeps the stored name.
        """
        query = f"""
            INSERT INTO relationships (
                counterpart_key, display_name, first_contact_at, last_contact_at, total_sent
            )
            VALUES (%s, %s, %s, %s, 1)
            ON CONFLICT (counterpart_key)
            DO UPDATE SET
                display_name = COALESCE(EXCLUDED.display_name, relationships.display_name),
                first_contact_at = LEAST(relationships.first_contact_at, EXCLUDED.first_contact_at),
                last_contact_at = GREATEST(relationships.last_contact_at, EXCLUDED.last_contact_at),
                total_sent = relationships.total_sent + 1,
                updated_at = NOW()
            RETURNING {cls.RELATIONSHIP_COLUMNS}
        """

        row = await fetch_one(
            query,
            (counterpart_key, display_name_hint, observed_at, observed_at),
            connection=connection,
        )
        if not row:
            raise RelationshipRepositoryError(
                "Relationship upsert returned no row", operation="upsert_relationship"
            )
        return cls._row_to_relationship(row)

    @classmethod
    async def insert_record_if_absent(
        cls,
        record: CommunicationRecord,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> bool:
        """Insert the record unless its external_id is already stored. True if inserted."""
        if record.relationship_id is None:
            raise RelationshipRepositoryError(
                "Record has no relationship_id", operation="insert_record", recoverable=False
            )

        query = """
            INSERT INTO communication_records (
                relationship_id, external_id, channel, thread_id, subject,
                sent_at, storage_tier, content, summary, word_count
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (external_id) DO NOTHING
            RETURNING id
        """

        row = await fetch_one(
            query,
            (
                record.relationship_id,
                record.external_id,
                record.channel,
                record.thread_id,
                record.subject,
                record.sent_at,
                record.storage_tier,
                record.content,
                record.summary,
                record.word_count,
            ),
            connection=connection,
        )
        return row is not None

    @staticmethod
    async def record_exists(external_id: str) -> bool:
        query = "SELECT EXISTS (SELECT 1 FROM communication_records WHERE external_id = %s)"
        return bool(await fetch_val(query, (external_id,)))

    @classmethod
    async def ingest_record(
        cls,
        counterpart_key: str,
        display_name_hint: str | None,
        record: CommunicationRecord,
    ) -> bool:
        """
        Attribute a record to its relationship in one transaction.

        Returns False, with nothing written, when the external_id was already
        ingested, so a duplicate never bumps total_sent.
        """
        try:
            async with await get_db_transaction() as conn:
                relationship = await cls.upsert_relationship(
                    counterpart_key, display_name_hint, record.sent_at, connection=conn
                )
                record.relationship_id = relationship.id
                if not await cls.insert_record_if_absent(record, connection=conn):
                    raise _DuplicateRecord(record.external_id)

        except _DuplicateRecord:
            logger.debug(
                "Duplicate record skipped",
                external_id=record.external_id,
                counterpart_key=counterpart_key,
            )
            return False
        except psycopg.Error as e:
            logger.error(
                "Record ingestion failed",
                external_id=record.external_id,
                counterpart_key=counterpart_key,
                error=str(e),
            )
            raise RelationshipRepositoryError(
                f"Failed to ingest record: {e}", operation="ingest_record"
            ) from e

        return True

    @staticmethod
    async def fetch_score_inputs() -> list[ScoreInput]:
        rows = await fetch_all(
            """
            SELECT id, first_contact_at, last_contact_at, total_sent
            FROM relationships
            ORDER BY id
            """
        )
        return [
            ScoreInput(
                id=row["id"],
                first_contact_at=row["first_contact_at"],
                last_contact_at=row["last_contact_at"],
                total_sent=row["total_sent"],
            )
            for row in rows
        ]

    @staticmethod
    async def update_scores(scores: Iterable[RelationshipScore], scored_at: datetime) -> int:
        """Write a full scoring pass in a single transaction."""
        scores_list = list(scores)
        if not scores_list:
            return 0

        query = """
            UPDATE relationships
            SET days_since_last_contact = %s,
                avg_per_month = %s,
                frequency = %s,
                health_score = %s,
                scored_at = %s,
                updated_at = NOW()
            WHERE id = %s
        """

        await execute_transaction(
            [
                (
                    query,
                    (
                        score.days_since_last_contact,
                        score.avg_per_month,
                        score.frequency,
                        score.health_score,
                        scored_at,
                        score.id,
                    ),
                )
                for score in scores_list
            ]
        )

        logger.debug("Batch updated relationship scores", relationship_count=len(scores_list))
        return len(scores_list)

    @staticmethod
    async def query_dormant(
        min_days_since: int,
        min_total_sent: int,
        health_floor: float,
        now: datetime,
        limit: int,
    ) -> list[dict]:
        """
        Scored relationships that have gone quiet, with the subject of their latest record.

        Days since contact are measured against now rather than the stored
        value so results do not depend on when scoring last ran.
        """
        cutoff = now - timedelta(days=min_days_since)
        query = """
            SELECT
                r.id,
                r.counterpart_key,
                r.display_name,
                r.last_contact_at,
                r.total_sent,
                r.avg_per_month,
                r.health_score,
                FLOOR(EXTRACT(EPOCH FROM (%s - r.last_contact_at)) / 86400)::int
                    AS days_since_last_contact,
                latest.subject AS last_subject
            FROM relationships r
            LEFT JOIN LATERAL (
                SELECT c.subject
                FROM communication_records c
                WHERE c.relationship_id = r.id
                ORDER BY c.sent_at DESC, c.id DESC
                LIMIT 1
            ) latest ON TRUE
            WHERE r.health_score IS NOT NULL
              AND r.health_score > %s
              AND r.total_sent >= %s
              AND r.last_contact_at <= %s
            ORDER BY r.avg_per_month DESC NULLS LAST, r.last_contact_at ASC
            LIMIT %s
        """

        return await fetch_all(query, (now, health_floor, min_total_sent, cutoff, limit))

    @staticmethod
    async def fetch_store_totals() -> dict[str, int]:
        """Row counts used by the status surface."""
        row = await fetch_one(
            """
            SELECT
                (SELECT COUNT(*) FROM relationships) AS relationships,
                COUNT(*) AS records,
                COUNT(*) FILTER (WHERE storage_tier = 'full') AS full_records,
                COUNT(*) FILTER (WHERE storage_tier = 'summary') AS summary_records,
                COUNT(*) FILTER (WHERE storage_tier = 'metadata') AS metadata_records
            FROM communication_records
            """
        )
        return {key: int(value or 0) for key, value in (row or {}).items()}
