"""
Domain models for the relationship intelligence feature.

Plain dataclasses shared by the repositories, the pipeline services and the
API layer. Anything computed lives in the services, not here.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

StorageTier = Literal["full", "summary", "metadata"]
RunStatus = Literal["running", "completed", "error"]
Channel = Literal["email", "message"]
KeyKind = Literal["email", "phone", "raw"]

TIER_FULL: StorageTier = "full"
TIER_SUMMARY: StorageTier = "summary"
TIER_METADATA: StorageTier = "metadata"

STATUS_RUNNING: RunStatus = "running"
STATUS_COMPLETED: RunStatus = "completed"
STATUS_ERROR: RunStatus = "error"


@dataclass(slots=True, frozen=True)
class NormalizedKey:
    """Canonical matching key for a counterpart plus what was observed alongside it."""

    key: str
    kind: KeyKind
    raw: str
    display_hint: str | None = None


@dataclass(slots=True)
class Relationship:
    """Represents a relationships row."""

    id: int
    counterpart_key: str
    display_name: str | None
    first_contact_at: datetime
    last_contact_at: datetime
    total_sent: int
    days_since_last_contact: int | None = None
    avg_per_month: float | None = None
    frequency: float | None = None
    health_score: float | None = None
    scored_at: datetime | None = None


@dataclass(slots=True)
class CommunicationRecord:
    """One outbound communication event, already tiered and ready to persist."""

    external_id: str
    sent_at: datetime
    storage_tier: StorageTier
    channel: Channel = "email"
    thread_id: str | None = None
    subject: str | None = None
    content: str | None = None
    summary: str | None = None
    word_count: int = 0
    relationship_id: int | None = None


@dataclass(slots=True)
class ProcessingCheckpoint:
    """Represents a processing_checkpoints row."""

    id: int
    run_type: str
    status: RunStatus
    window_cursor: datetime | None
    history_start: datetime | None
    records_processed: int
    error_message: str | None
    started_at: datetime
    ended_at: datetime | None
    updated_at: datetime | None = None

    @property
    def is_resumable(self) -> bool:
        return self.status == STATUS_ERROR and self.window_cursor is not None


@dataclass(slots=True)
class OutboundRecord:
    """A sent item as returned by a transport, before normalization."""

    id: str
    to: list[str]
    subject: str | None
    body: str | None
    sent_at: datetime
    thread_id: str | None = None


@dataclass(slots=True)
class OutboundPage:
    records: list[OutboundRecord] = field(default_factory=list)
    next_page_token: str | None = None


@dataclass(slots=True)
class ScoreInput:
    """The subset of a relationship the scoring pass needs."""

    id: int
    first_contact_at: datetime
    last_contact_at: datetime
    total_sent: int


@dataclass(slots=True)
class RelationshipScore:
    id: int
    days_since_last_contact: int
    avg_per_month: float
    frequency: float
    health_score: float


@dataclass(slots=True)
class DormantRelationship:
    """Entry in the ranked reconnection list."""

    name: str
    counterpart_key: str
    days_since_last_contact: int
    health_score: float
    avg_per_month: float
    total_sent: int
    last_subject: str | None
    last_contact_at: datetime | None
