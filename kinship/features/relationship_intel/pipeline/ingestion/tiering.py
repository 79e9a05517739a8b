"""
Storage tier policy.

A record's age at ingestion decides what is kept: the full body for recent
mail, a short summary for the middle band, and only metadata after that. The
tier is fixed when the record is written.
"""

from datetime import UTC, datetime
from typing import Protocol

from kinship.config import settings
from kinship.features.relationship_intel.domain import (
    TIER_FULL,
    TIER_METADATA,
    TIER_SUMMARY,
    StorageTier,
)
from kinship.features.relationship_intel.errors import SummarizationError
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SUMMARY_EXCERPT_CHARS = 280


class Summarizer(Protocol):
    async def summarize(self, subject: str | None, body: str) -> str: ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def whole_months_between(earlier: datetime, later: datetime) -> int:
    """
    Count whole calendar months from earlier to later.

    Jan 15 -> Jul 15 is 6; Jan 15 -> Jul 14 is 5. Negative when later < earlier.
    """
    earlier = _as_utc(earlier)
    later = _as_utc(later)
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)

    later_in_month = (later.day, later.time())
    earlier_in_month = (earlier.day, earlier.time())
    if months > 0 and later_in_month < earlier_in_month:
        months -= 1
    elif months < 0 and later_in_month > earlier_in_month:
        months += 1
    return months


def classify(
    sent_at: datetime,
    now: datetime,
    full_months: int | None = None,
    summary_months: int | None = None,
) -> StorageTier:
    full_months = settings.FULL_TIER_MONTHS if full_months is None else full_months
    summary_months = settings.SUMMARY_TIER_MONTHS if summary_months is None else summary_months

    age_months = whole_months_between(sent_at, now)
    if age_months <= full_months:
        return TIER_FULL
    if age_months <= summary_months:
        return TIER_SUMMARY
    return TIER_METADATA


def word_count(body: str | None) -> int:
    return len(body.split()) if body else 0


def fallback_summary(subject: str | None, body: str | None) -> str:
    """Summary used when the summarizer is unavailable: the subject, else a body excerpt."""
    if subject and subject.strip():
        return subject.strip()
    text = " ".join((body or "").split())
    if len(text) <= SUMMARY_EXCERPT_CHARS:
        return text
    return text[: SUMMARY_EXCERPT_CHARS - 3].rstrip() + "..."


async def retained_text(
    tier: StorageTier,
    subject: str | None,
    body: str | None,
    summarizer: Summarizer | None,
    min_summary_chars: int | None = None,
) -> tuple[str | None, str | None]:
    """
    Return the (content, summary) pair to store for a record of this tier.

    Only summary-tier bodies of at least min_summary_chars reach the
    summarizer; shorter ones are stored as their own summary.
    """
    if tier == TIER_FULL:
        return body or "", None

    if tier == TIER_METADATA:
        return None, None

    min_summary_chars = settings.SUMMARY_MIN_CHARS if min_summary_chars is None else min_summary_chars
    text = (body or "").strip()
    if len(text) < min_summary_chars:
        return None, text or fallback_summary(subject, body)
    if summarizer is None:
        return None, fallback_summary(subject, body)

    try:
        summary = await summarizer.summarize(subject, text)
    except SummarizationError as e:
        logger.warning("Summarization failed, using fallback", error=str(e))
        return None, fallback_summary(subject, body)

    return None, (summary or "").strip() or fallback_summary(subject, body)
