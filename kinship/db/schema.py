"""
Relationship store schema.

Statements are idempotent so the API and the worker can both call
ensure_schema() on startup.
"""

from kinship.db.helpers import execute_transaction
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS relationships (
        id BIGSERIAL PRIMARY KEY,
        counterpart_key TEXT NOT NULL UNIQUE,
        display_name TEXT,
        first_contact_at TIMESTAMPTZ NOT NULL,
        last_contact_at TIMESTAMPTZ NOT NULL,
        total_sent INTEGER NOT NULL DEFAULT 1 CHECK (total_sent >= 1),
        days_since_last_contact INTEGER,
        avg_per_month DOUBLE PRECISION,
        frequency DOUBLE PRECISION,
        health_score DOUBLE PRECISION,
        scored_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (first_contact_at <= last_contact_at)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS communication_records (
        id BIGSERIAL PRIMARY KEY,
        relationship_id BIGINT NOT NULL REFERENCES relationships(id) ON DELETE CASCADE,
        external_id TEXT NOT NULL UNIQUE,
        channel TEXT NOT NULL DEFAULT 'email' CHECK (channel IN ('email', 'message')),
        thread_id TEXT,
        subject TEXT,
        sent_at TIMESTAMPTZ NOT NULL,
        storage_tier TEXT NOT NULL CHECK (storage_tier IN ('full', 'summary', 'metadata')),
        content TEXT,
        summary TEXT,
        word_count INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (
            (storage_tier = 'full' AND content IS NOT NULL AND summary IS NULL)
            OR (storage_tier = 'summary' AND content IS NULL AND summary IS NOT NULL)
            OR (storage_tier = 'metadata' AND content IS NULL AND summary IS NULL)
        )
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_communication_records_relationship_sent
        ON communication_records (relationship_id, sent_at DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS processing_checkpoints (
        id BIGSERIAL PRIMARY KEY,
        run_type TEXT NOT NULL,
        status TEXT NOT NULL CHECK (status IN ('running', 'completed', 'error')),
        window_cursor TIMESTAMPTZ,
        history_start TIMESTAMPTZ,
        records_processed INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        ended_at TIMESTAMPTZ,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    # Single running row per run type
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_processing_checkpoints_running
        ON processing_checkpoints (run_type)
        WHERE status = 'running'
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_processing_checkpoints_run_type_started
        ON processing_checkpoints (run_type, started_at DESC)
    """,
]


async def ensure_schema() -> None:
    """Create the relationship store tables and indexes if they are missing."""
    await execute_transaction([(statement, ()) for statement in SCHEMA_STATEMENTS])
    logger.info("Relationship store schema ensured", statements=len(SCHEMA_STATEMENTS))
