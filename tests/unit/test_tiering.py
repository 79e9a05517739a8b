from datetime import UTC, datetime, timedelta

import pytest

from kinship.features.relationship_intel.errors import SummarizationError
from kinship.features.relationship_intel.pipeline.ingestion import (
    classify,
    fallback_summary,
    retained_text,
    whole_months_between,
)

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=UTC)


def test_whole_months_counts_calendar_months():
    assert whole_months_between(datetime(2026, 1, 15, tzinfo=UTC), datetime(2026, 7, 15, tzinfo=UTC)) == 6
    assert whole_months_between(datetime(2026, 1, 15, tzinfo=UTC), datetime(2026, 7, 14, tzinfo=UTC)) == 5
    assert whole_months_between(datetime(2026, 7, 15, tzinfo=UTC), datetime(2026, 1, 15, tzinfo=UTC)) == -6


def test_naive_datetimes_are_treated_as_utc():
    assert whole_months_between(datetime(2025, 12, 15, 12, 0), NOW) == 6


def test_exactly_six_months_is_full():
    assert classify(datetime(2025, 12, 15, 12, 0, tzinfo=UTC), NOW) == "full"


def test_seven_months_is_summary():
    assert classify(datetime(2025, 11, 15, 12, 0, tzinfo=UTC), NOW) == "summary"


def test_exactly_eighteen_months_is_summary():
    assert classify(datetime(2024, 12, 15, 12, 0, tzinfo=UTC), NOW) == "summary"


def test_one_month_and_one_day_past_eighteen_months_is_metadata():
    assert classify(datetime(2024, 11, 14, 12, 0, tzinfo=UTC), NOW) == "metadata"


def test_future_dated_record_is_full():
    assert classify(NOW + timedelta(days=3), NOW) == "full"


def test_tier_boundaries_can_be_overridden():
    sent_at = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)
    assert classify(sent_at, NOW, full_months=2, summary_months=3) == "summary"
    assert classify(sent_at, NOW, full_months=2, summary_months=2) == "metadata"


def test_fallback_summary_prefers_subject():
    assert fallback_summary("  Dinner plans ", "body text") == "Dinner plans"


def test_fallback_summary_truncates_long_body():
    summary = fallback_summary(None, "word " * 200)
    assert len(summary) <= 280
    assert summary.endswith("...")


class RecordingSummarizer:
    def __init__(self, result="A short summary", error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def summarize(self, subject, body):
        self.calls.append((subject, body))
        if self.error:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_full_tier_keeps_body_only():
    content, summary = await retained_text("full", "Hi", "Whole body", RecordingSummarizer())
    assert content == "Whole body"
    assert summary is None


@pytest.mark.asyncio
async def test_metadata_tier_keeps_nothing():
    summarizer = RecordingSummarizer()
    assert await retained_text("metadata", "Hi", "Whole body", summarizer) == (None, None)
    assert summarizer.calls == []


@pytest.mark.asyncio
async def test_short_summary_tier_body_is_its_own_summary():
    summarizer = RecordingSummarizer()
    content, summary = await retained_text("summary", "Hi", " Thanks! ", summarizer)
    assert content is None
    assert summary == "Thanks!"
    assert summarizer.calls == []


@pytest.mark.asyncio
async def test_empty_summary_tier_body_uses_subject():
    content, summary = await retained_text("summary", "Lunch?", "", RecordingSummarizer())
    assert content is None
    assert summary == "Lunch?"


@pytest.mark.asyncio
async def test_long_summary_tier_body_is_summarized():
    summarizer = RecordingSummarizer()
    body = "Long update about the move. " * 10
    content, summary = await retained_text("summary", "Update", body, summarizer)
    assert content is None
    assert summary == "A short summary"
    assert summarizer.calls == [("Update", body.strip())]


@pytest.mark.asyncio
async def test_summarizer_failure_uses_fallback():
    summarizer = RecordingSummarizer(error=SummarizationError("rate limited"))
    body = "Long update about the move. " * 10
    _, summary = await retained_text("summary", "Update", body, summarizer)
    assert summary == "Update"


@pytest.mark.asyncio
async def test_missing_summarizer_uses_fallback():
    body = "Long update about the move. " * 10
    _, summary = await retained_text("summary", None, body, None)
    assert summary == " ".join(body.split())
