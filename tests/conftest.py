from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from kinship.features.relationship_intel.domain import (
    CommunicationRecord,
    OutboundPage,
    OutboundRecord,
    ProcessingCheckpoint,
    ScoreInput,
)
from kinship.features.relationship_intel.errors import TransportError
from kinship.features.relationship_intel.repository import RelationshipRepositoryError

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=UTC)


class FakeRelationshipStore:
    """In-memory stand-in for RelationshipRepository."""

    def __init__(self):
        self.relationships: dict[str, dict] = {}
        self.records: dict[str, CommunicationRecord] = {}
        self.fail_external_ids: set[str] = set()
        self._next_id = 1

    async def record_exists(self, external_id: str) -> bool:
        return external_id in self.records

    async def ingest_record(
        self, counterpart_key: str, display_name_hint: str | None, record: CommunicationRecord
    ) -> bool:
        if record.external_id in self.fail_external_ids:
            raise RelationshipRepositoryError("connection lost", operation="ingest_record")
        if record.external_id in self.records:
            return False

        row = self.relationships.get(counterpart_key)
        if row is None:
            row = {
                "id": self._next_id,
                "counterpart_key": counterpart_key,
                "display_name": display_name_hint,
                "first_contact_at": record.sent_at,
                "last_contact_at": record.sent_at,
                "total_sent": 1,
                "days_since_last_contact": None,
                "avg_per_month": None,
                "frequency": None,
                "health_score": None,
            }
            self._next_id += 1
            self.relationships[counterpart_key] = row
        else:
            row["display_name"] = display_name_hint or row["display_name"]
            row["first_contact_at"] = min(row["first_contact_at"], record.sent_at)
            row["last_contact_at"] = max(row["last_contact_at"], record.sent_at)
            row["total_sent"] += 1

        self.records[record.external_id] = replace(record, relationship_id=row["id"])
        return True

    async def fetch_score_inputs(self) -> list[ScoreInput]:
        return [
            ScoreInput(
                id=row["id"],
                first_contact_at=row["first_contact_at"],
                last_contact_at=row["last_contact_at"],
                total_sent=row["total_sent"],
            )
            for row in self.relationships.values()
        ]

    async def update_scores(self, scores, scored_at: datetime) -> int:
        by_id = {row["id"]: row for row in self.relationships.values()}
        count = 0
        for score in scores:
            row = by_id[score.id]
            row.update(
                days_since_last_contact=score.days_since_last_contact,
                avg_per_month=score.avg_per_month,
                frequency=score.frequency,
                health_score=score.health_score,
                scored_at=scored_at,
            )
            count += 1
        return count

    async def query_dormant(self, min_days_since, min_total_sent, health_floor, now, limit):
        cutoff = now - timedelta(days=min_days_since)
        rows = [
            dict(row, last_subject=None)
            for row in self.relationships.values()
            if row["health_score"] is not None
            and row["health_score"] > health_floor
            and row["total_sent"] >= min_total_sent
            and row["last_contact_at"] <= cutoff
        ]
        return rows[:limit]


class FakeCheckpointStore:
    """In-memory stand-in for CheckpointRepository."""

    def __init__(self):
        self.checkpoints: list[ProcessingCheckpoint] = []
        self.progress: list[tuple[int, datetime | None, int]] = []

    def _get(self, checkpoint_id: int) -> ProcessingCheckpoint:
        return next(c for c in self.checkpoints if c.id == checkpoint_id)

    async def start_run(self, run_type, history_start, window_cursor=None, records_processed=0):
        if any(c.run_type == run_type and c.status == "running" for c in self.checkpoints):
            return None
        checkpoint = ProcessingCheckpoint(
            id=len(self.checkpoints) + 1,
            run_type=run_type,
            status="running",
            window_cursor=window_cursor,
            history_start=history_start,
            records_processed=records_processed,
            error_message=None,
            started_at=NOW,
            ended_at=None,
        )
        self.checkpoints.append(checkpoint)
        return checkpoint

    async def update_progress(self, checkpoint_id, window_cursor, records_processed):
        checkpoint = self._get(checkpoint_id)
        if checkpoint.status != "running":
            return
        checkpoint.window_cursor = window_cursor
        checkpoint.records_processed = records_processed
        self.progress.append((checkpoint_id, window_cursor, records_processed))

    async def mark_completed(self, checkpoint_id, records_processed):
        checkpoint = self._get(checkpoint_id)
        checkpoint.status = "completed"
        checkpoint.records_processed = records_processed
        checkpoint.error_message = None
        checkpoint.ended_at = NOW

    async def mark_failed(self, checkpoint_id, error_message, records_processed=None):
        checkpoint = self._get(checkpoint_id)
        checkpoint.status = "error"
        checkpoint.error_message = error_message[:500]
        if records_processed is not None:
            checkpoint.records_processed = records_processed
        checkpoint.ended_at = NOW

    async def load_latest(self, run_type):
        matching = [c for c in self.checkpoints if c.run_type == run_type]
        return matching[-1] if matching else None

    async def load_resumable(self, run_type):
        latest = await self.load_latest(run_type)
        return latest if latest and latest.is_resumable else None

    async def recover_stale_runs(self, run_type, stale_after_minutes):
        return 0

    async def list_latest_per_run_type(self):
        latest: dict[str, ProcessingCheckpoint] = {}
        for checkpoint in self.checkpoints:
            latest[checkpoint.run_type] = checkpoint
        return list(latest.values())


class FakeTransport:
    """
    Serves OutboundRecords by window, page_size at a time, newest first.

    keep_order=True serves each window in the given order instead.
    """

    def __init__(self, records=(), page_size: int = 50, keep_order: bool = False):
        self.records = list(records)
        self.page_size = page_size
        self.keep_order = keep_order
        self.calls: list[tuple[datetime, datetime, str | None]] = []
        self.errors: dict[datetime, Exception] = {}
        self.on_call = None

    async def list_outbound_records(self, window_start, window_end, page_token=None):
        self.calls.append((window_start, window_end, page_token))
        if self.on_call:
            self.on_call(len(self.calls))
        if window_start in self.errors:
            raise self.errors[window_start]

        in_window = [r for r in self.records if window_start <= r.sent_at < window_end]
        if not self.keep_order:
            in_window.sort(key=lambda r: r.sent_at, reverse=True)
        offset = int(page_token) if page_token else 0
        page = in_window[offset : offset + self.page_size]
        has_more = offset + self.page_size < len(in_window)
        return OutboundPage(
            records=page, next_page_token=str(offset + self.page_size) if has_more else None
        )


def make_record(record_id, to, sent_at, subject="Hello", body="Quick note", thread_id=None):
    return OutboundRecord(
        id=record_id,
        to=list(to),
        subject=subject,
        body=body,
        sent_at=sent_at,
        thread_id=thread_id,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def relationship_store():
    return FakeRelationshipStore()


@pytest.fixture
def checkpoint_store():
    return FakeCheckpointStore()


@pytest.fixture
def transport_error():
    return TransportError("Gmail API error (HTTP 500): backend", status_code=500)
