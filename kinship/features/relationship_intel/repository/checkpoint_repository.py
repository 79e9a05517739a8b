"""
Persistence helpers for processing_checkpoints.

The partial unique index on (run_type) WHERE status = 'running' backs the
single-running-row guard in start_run().
"""

from datetime import datetime

from kinship.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from kinship.features.relationship_intel.domain import ProcessingCheckpoint
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_CHARS = 500


class CheckpointRepository:
    """Run lifecycle for the ingestion pipeline."""

    CHECKPOINT_COLUMNS = """
        id, run_type, status, window_cursor, history_start, records_processed,
        error_message, started_at, ended_at, updated_at
    """

    @classmethod
    def _row_to_checkpoint(cls, row: dict | None) -> ProcessingCheckpoint | None:
        if not row:
            return None

        return ProcessingCheckpoint(
            id=row["id"],
            run_type=row["run_type"],
            status=row["status"],
            window_cursor=row.get("window_cursor"),
            history_start=row.get("history_start"),
            records_processed=row.get("records_processed") or 0,
            error_message=row.get("error_message"),
            started_at=row["started_at"],
            ended_at=row.get("ended_at"),
            updated_at=row.get("updated_at"),
        )

    @classmethod
    async def start_run(
        cls,
        run_type: str,
        history_start: datetime,
        window_cursor: datetime | None = None,
        records_processed: int = 0,
    ) -> ProcessingCheckpoint | None:
        """
        Insert a running checkpoint unless one already exists for run_type.

        Returns None when another run holds the slot. The NOT EXISTS check and
        the unique index make this safe against two processes racing.
        """
        query = f"""
            INSERT INTO processing_checkpoints (
                run_type, status, window_cursor, history_start,
                records_processed, started_at, updated_at
            )
            SELECT %s, 'running', %s, %s, %s, NOW(), NOW()
            WHERE NOT EXISTS (
                SELECT 1 FROM processing_checkpoints
                WHERE run_type = %s AND status = 'running'
            )
            ON CONFLICT DO NOTHING
            RETURNING {cls.CHECKPOINT_COLUMNS}
        """

        row = await fetch_one(
            query, (run_type, window_cursor, history_start, records_processed, run_type)
        )
        checkpoint = cls._row_to_checkpoint(row)
        if checkpoint:
            logger.info(
                "Processing run started",
                run_type=run_type,
                checkpoint_id=checkpoint.id,
                window_cursor=window_cursor.isoformat() if window_cursor else None,
            )
        return checkpoint

    @staticmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def update_progress(
        checkpoint_id: int, window_cursor: datetime | None, records_processed: int
    ) -> None:
        """Persist progress and refresh the heartbeat."""
        query = """
            UPDATE processing_checkpoints
            SET window_cursor = %s,
                records_processed = %s,
                updated_at = NOW()
            WHERE id = %s
              AND status = 'running'
        """
        await execute_query(query, (window_cursor, records_processed, checkpoint_id))

    @staticmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def mark_completed(checkpoint_id: int, records_processed: int) -> None:
        query = """
            UPDATE processing_checkpoints
            SET status = 'completed',
                records_processed = %s,
                ended_at = NOW(),
                updated_at = NOW(),
                error_message = NULL
            WHERE id = %s
        """
        await execute_query(query, (records_processed, checkpoint_id))
        logger.info(
            "Processing run completed",
            checkpoint_id=checkpoint_id,
            records_processed=records_processed,
        )

    @staticmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def mark_failed(
        checkpoint_id: int, error_message: str, records_processed: int | None = None
    ) -> None:
        """Mark the run as errored; the partial count is kept."""
        truncated_error = (error_message or "")[:MAX_ERROR_MESSAGE_CHARS]
        query = """
            UPDATE processing_checkpoints
            SET status = 'error',
                records_processed = COALESCE(%s, records_processed),
                ended_at = NOW(),
                updated_at = NOW(),
                error_message = %s
            WHERE id = %s
        """
        await execute_query(query, (records_processed, truncated_error, checkpoint_id))
        logger.warning(
            "Processing run marked error", checkpoint_id=checkpoint_id, error=truncated_error
        )

    @classmethod
    async def load_latest(cls, run_type: str) -> ProcessingCheckpoint | None:
        query = f"""
            SELECT {cls.CHECKPOINT_COLUMNS}
            FROM processing_checkpoints
            WHERE run_type = %s
            ORDER BY started_at DESC, id DESC
            LIMIT 1
        """
        return cls._row_to_checkpoint(await fetch_one(query, (run_type,)))

    @classmethod
    async def load_resumable(cls, run_type: str) -> ProcessingCheckpoint | None:
        """The latest checkpoint, if it ended in error with a cursor to continue from."""
        latest = await cls.load_latest(run_type)
        if latest and latest.is_resumable:
            return latest
        return None

    @staticmethod
    async def recover_stale_runs(run_type: str, stale_after_minutes: int) -> int:
        """Mark running rows without a recent heartbeat as error so they stop blocking."""
        query = """
            UPDATE processing_checkpoints
            SET status = 'error',
                ended_at = NOW(),
                updated_at = NOW(),
                error_message = %s
            WHERE run_type = %s
              AND status = 'running'
              AND updated_at < NOW() - make_interval(mins => %s)
        """
        message = f"Run abandoned: no progress for {stale_after_minutes} minutes"
        recovered = await execute_query(query, (message, run_type, stale_after_minutes))
        if recovered:
            logger.warning("Recovered stale processing runs", run_type=run_type, count=recovered)
        return recovered

    @classmethod
    async def list_latest_per_run_type(cls) -> list[ProcessingCheckpoint]:
        query = f"""
            SELECT DISTINCT ON (run_type) {cls.CHECKPOINT_COLUMNS}
            FROM processing_checkpoints
            ORDER BY run_type, started_at DESC, id DESC
        """
        rows = await fetch_all(query)
        return [cls._row_to_checkpoint(row) for row in rows]
