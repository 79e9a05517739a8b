"""
Response models for the relationship status surface.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ProcessingStatusResponse(BaseModel):
    """Latest checkpoint for one run type."""

    run_type: str
    status: Literal["idle", "running", "completed", "error"]
    records_processed: int = 0
    window_cursor: datetime | None = None
    history_start: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    updated_at: datetime | None = None
    error_message: str | None = None
    is_partial: bool = Field(
        False, description="True when results reflect an incomplete or failed run"
    )


class StoreTotalsResponse(BaseModel):
    relationships: int = 0
    records: int = 0
    full_records: int = 0
    summary_records: int = 0
    metadata_records: int = 0


class StatusOverviewResponse(BaseModel):
    """Response for GET /relationships/status"""

    runs: list[ProcessingStatusResponse]
    totals: StoreTotalsResponse


class DormantRelationshipResponse(BaseModel):
    name: str
    counterpart_key: str
    days_since_last_contact: int
    health_score: float
    avg_per_month: float
    total_sent: int
    last_subject: str | None = None
    last_contact_at: datetime | None = None


class DormantListResponse(BaseModel):
    """Response for GET /relationships/dormant"""

    relationships: list[DormantRelationshipResponse]
    total_count: int
    min_days_since: int
    min_total_sent: int
    limit: int
