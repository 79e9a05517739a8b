from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from kinship.features.relationship_intel.identity import StaticDisplayNameResolver
from kinship.features.relationship_intel.integrations import MessageStoreTransport
from kinship.features.relationship_intel.jobs import (
    history_job,
    message_history_job,
    rescore_job,
    runtime,
)


class StubPipeline:
    instances = []

    def __init__(self, transport, **kwargs):
        self.transport = transport
        self.kwargs = kwargs
        self.run = AsyncMock(return_value=SimpleNamespace(status="completed"))
        StubPipeline.instances.append(self)

    def request_stop(self):
        pass


@pytest.fixture
def fake_pool(monkeypatch):
    pool = SimpleNamespace(initialize=AsyncMock(), close=AsyncMock())
    monkeypatch.setattr(runtime, "db_pool", pool)
    monkeypatch.setattr(runtime, "ensure_schema", AsyncMock())
    return pool


@pytest.mark.asyncio
async def test_ingest_email_history_closes_transport(monkeypatch):
    transport = MagicMock()
    transport.close = AsyncMock()
    monkeypatch.setattr(history_job, "GmailOutboundTransport", lambda: transport)
    monkeypatch.setattr(history_job, "IngestionPipeline", StubPipeline)
    monkeypatch.setattr(history_job, "install_stop_handlers", MagicMock())
    monkeypatch.setattr(history_job.settings, "OPENAI_API_KEY", None)

    result = await history_job.ingest_email_history()

    assert result.status == "completed"
    pipeline = StubPipeline.instances[-1]
    assert pipeline.transport is transport
    assert pipeline.kwargs["run_type"] == "email_history"
    assert pipeline.kwargs["summarizer"] is None
    history_job.install_stop_handlers.assert_called_once_with(pipeline.request_stop)
    transport.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_ingest_email_history_closes_transport_on_failure(monkeypatch):
    transport = MagicMock()
    transport.close = AsyncMock()

    class FailingPipeline(StubPipeline):
        def __init__(self, transport, **kwargs):
            super().__init__(transport, **kwargs)
            self.run = AsyncMock(side_effect=RuntimeError("boom"))

    monkeypatch.setattr(history_job, "GmailOutboundTransport", lambda: transport)
    monkeypatch.setattr(history_job, "IngestionPipeline", FailingPipeline)
    monkeypatch.setattr(history_job, "install_stop_handlers", MagicMock())

    with pytest.raises(RuntimeError):
        await history_job.ingest_email_history()

    transport.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_store_session_opens_and_closes_pool(fake_pool):
    async with runtime.store_session():
        fake_pool.initialize.assert_awaited_once()
        runtime.ensure_schema.assert_awaited_once()
        fake_pool.close.assert_not_awaited()

    fake_pool.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_rescore_job_runs_inside_store_session(monkeypatch, fake_pool):
    recompute = AsyncMock(
        return_value=SimpleNamespace(relationships_scored=3, duration_seconds=0.01)
    )
    monkeypatch.setattr(rescore_job.scoring_service, "recompute_scores", recompute)

    await rescore_job.run_rescore_job()

    recompute.assert_awaited_once()
    fake_pool.close.assert_awaited_once()


class EmptyMessageStore:
    async def fetch_sent_messages(self, start, end, offset, limit):
        return []


@pytest.mark.asyncio
async def test_ingest_message_history_uses_message_store(monkeypatch):
    monkeypatch.setattr(message_history_job, "IngestionPipeline", StubPipeline)
    monkeypatch.setattr(message_history_job, "install_stop_handlers", MagicMock())
    monkeypatch.setattr(history_job.settings, "OPENAI_API_KEY", None)
    store = EmptyMessageStore()
    resolver = StaticDisplayNameResolver({"5551234567": "Dana"})

    result = await message_history_job.ingest_message_history(store, resolver)

    assert result.status == "completed"
    pipeline = StubPipeline.instances[-1]
    assert isinstance(pipeline.transport, MessageStoreTransport)
    assert pipeline.transport._store is store
    assert pipeline.kwargs["run_type"] == "message_history"
    assert pipeline.kwargs["channel"] == "message"
    assert pipeline.kwargs["resolver"] is resolver
    message_history_job.install_stop_handlers.assert_called_once_with(pipeline.request_stop)


@pytest.mark.asyncio
async def test_message_history_job_runs_inside_store_session(monkeypatch, fake_pool):
    monkeypatch.setattr(message_history_job, "IngestionPipeline", StubPipeline)
    monkeypatch.setattr(message_history_job, "install_stop_handlers", MagicMock())
    monkeypatch.setattr(history_job.settings, "OPENAI_API_KEY", None)

    result = await message_history_job.run_message_history_job(EmptyMessageStore())

    assert result.status == "completed"
    fake_pool.initialize.assert_awaited_once()
    fake_pool.close.assert_awaited_once()
