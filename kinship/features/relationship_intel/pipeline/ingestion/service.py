"""
Outbound history ingestion pipeline.

Walks sent history backward from now in one-month windows, attributes each
record to a relationship, stores it at the tier its age allows and persists a
checkpoint after every page. A run that stops or fails can be resumed from
its checkpoint; a run that is already active blocks new ones.
"""

from __future__ import annotations

import asyncio
import calendar
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from kinship.config import settings
from kinship.db.helpers import DatabaseError
from kinship.features.relationship_intel.domain import (
    STATUS_COMPLETED,
    STATUS_ERROR,
    CommunicationRecord,
    NormalizedKey,
    OutboundPage,
    OutboundRecord,
    ProcessingCheckpoint,
    RunStatus,
)
from kinship.features.relationship_intel.errors import (
    IngestionConfigurationError,
    PipelineAlreadyRunningError,
    TransportAuthError,
    TransportError,
)
from kinship.features.relationship_intel.identity import (
    CachedDisplayNameResolver,
    DisplayNameResolver,
    NullDisplayNameResolver,
    normalize,
)
from kinship.features.relationship_intel.pipeline.scoring import ScoringService, scoring_service
from kinship.features.relationship_intel.repository import (
    CheckpointRepository,
    RelationshipRepository,
)
from kinship.infrastructure.observability.logging import (
    bind_run_context,
    clear_run_context,
    get_logger,
)

from .tiering import Summarizer, classify, retained_text, word_count

logger = get_logger(__name__)

RUN_TYPE_EMAIL_HISTORY = "email_history"
RUN_TYPE_MESSAGE_HISTORY = "message_history"
STOPPED_MESSAGE = "Run stopped before completion"


class OutboundTransport(Protocol):
    async def list_outbound_records(
        self,
        window_start: datetime,
        window_end: datetime,
        page_token: str | None = None,
    ) -> OutboundPage: ...


@dataclass(slots=True)
class IngestionResult:
    run_type: str
    status: RunStatus
    records_processed: int
    windows_processed: int
    windows_failed: int
    duration_seconds: float
    error: str | None = None
    checkpoint_id: int | None = None
    resumed: bool = False
    duplicates_skipped: int = 0
    records_failed: int = 0
    records_without_counterpart: int = 0


@dataclass(slots=True)
class _RunState:
    checkpoint: ProcessingCheckpoint
    now: datetime
    records_processed: int
    window_cursor: datetime
    names: CachedDisplayNameResolver
    windows_processed: int = 0
    windows_failed: int = 0
    duplicates_skipped: int = 0
    records_failed: int = 0
    records_without_counterpart: int = 0
    page_requests: int = 0
    stopped: bool = False
    failed_windows: list[str] = field(default_factory=list)


def months_before(value: datetime, months: int) -> datetime:
    """Same wall-clock instant the given number of calendar months earlier, day clamped."""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class IngestionPipeline:
    """
    Single-flight, resumable ingestion of one outbound channel.

    The running checkpoint row is the only concurrency control: start_run()
    refuses to create a second one for the same run type.
    """

    def __init__(
        self,
        transport: OutboundTransport,
        *,
        run_type: str = RUN_TYPE_EMAIL_HISTORY,
        channel: str = "email",
        summarizer: Summarizer | None = None,
        resolver: DisplayNameResolver | None = None,
        relationship_repository=RelationshipRepository,
        checkpoint_repository=CheckpointRepository,
        scorer: ScoringService | None = None,
        self_identifiers: Iterable[str] | None = None,
        history_years_back: int | None = None,
        window_delay_seconds: float | None = None,
        stale_run_timeout_minutes: int | None = None,
    ):
        self._transport = transport
        self._run_type = run_type
        self._channel = channel
        self._summarizer = summarizer
        self._resolver = resolver or NullDisplayNameResolver()
        self._relationships = relationship_repository
        self._checkpoints = checkpoint_repository
        self._scorer = scorer or scoring_service

        identifiers = settings.SELF_IDENTIFIERS if self_identifiers is None else self_identifiers
        self._self_keys = {normalize(identifier).key for identifier in identifiers} - {""}

        self._history_years_back = (
            settings.HISTORY_YEARS_BACK if history_years_back is None else history_years_back
        )
        self._window_delay_seconds = (
            settings.INGESTION_WINDOW_DELAY_SECONDS
            if window_delay_seconds is None
            else window_delay_seconds
        )
        self._stale_run_timeout_minutes = (
            settings.STALE_RUN_TIMEOUT_MINUTES
            if stale_run_timeout_minutes is None
            else stale_run_timeout_minutes
        )

        self._stop_event = asyncio.Event()
        self._running = False

    @property
    def run_type(self) -> str:
        return self._run_type

    @property
    def is_running(self) -> bool:
        return self._running

    def request_stop(self) -> None:
        """Ask the active run to stop after its in-flight page."""
        logger.info("Ingestion stop requested", run_type=self._run_type, running=self._running)
        self._stop_event.set()

    async def run(self, now: datetime | None = None) -> IngestionResult:
        """
        Execute one run, resuming the previous one when it ended in error.

        Raises:
            PipelineAlreadyRunningError: another run of this type is active
        """
        now = now or datetime.now(UTC)
        started = time.monotonic()

        await self._checkpoints.recover_stale_runs(
            self._run_type, self._stale_run_timeout_minutes
        )
        previous = await self._checkpoints.load_resumable(self._run_type)

        if previous:
            history_start = previous.history_start or self._history_start(now)
            window_cursor = previous.window_cursor
            carried = previous.records_processed
        else:
            history_start = self._history_start(now)
            window_cursor = None
            carried = 0

        checkpoint = await self._checkpoints.start_run(
            self._run_type,
            history_start,
            window_cursor=window_cursor,
            records_processed=carried,
        )
        if checkpoint is None:
            logger.warning("Ingestion run refused, another run is active", run_type=self._run_type)
            raise PipelineAlreadyRunningError(self._run_type)

        state = _RunState(
            checkpoint=checkpoint,
            now=now,
            records_processed=carried,
            window_cursor=window_cursor or now,
            names=CachedDisplayNameResolver(self._resolver),
        )

        self._running = True
        bind_run_context(run_type=self._run_type, checkpoint_id=checkpoint.id)
        logger.info(
            "Ingestion run started",
            resumed=previous is not None,
            history_start=history_start.isoformat(),
            window_cursor=state.window_cursor.isoformat(),
            records_carried=carried,
        )

        try:
            self._validate()
            await self._walk(state, history_start)

        except (TransportAuthError, IngestionConfigurationError) as e:
            message = str(e) or type(e).__name__
            logger.error(
                "Ingestion run aborted",
                error=message,
                error_type=type(e).__name__,
                records_processed=state.records_processed,
            )
            await self._checkpoints.mark_failed(checkpoint.id, message, state.records_processed)
            await self._score_best_effort(now)
            return self._result(state, STATUS_ERROR, started, previous is not None, message)

        except Exception as e:
            logger.exception("Ingestion run failed unexpectedly", error=str(e))
            await self._checkpoints.mark_failed(
                checkpoint.id, f"Unexpected error: {e}", state.records_processed
            )
            raise

        finally:
            self._running = False
            self._stop_event.clear()
            clear_run_context()

        if state.stopped:
            await self._checkpoints.mark_failed(
                checkpoint.id, STOPPED_MESSAGE, state.records_processed
            )
            await self._score_best_effort(now)
            return self._result(state, STATUS_ERROR, started, previous is not None, STOPPED_MESSAGE)

        try:
            await self._scorer.recompute_scores(now)
        except Exception as e:
            logger.exception("Scoring failed after ingestion", run_type=self._run_type)
            await self._checkpoints.mark_failed(
                checkpoint.id, f"Scoring failed: {e}", state.records_processed
            )
            raise

        await self._checkpoints.mark_completed(checkpoint.id, state.records_processed)
        return self._result(state, STATUS_COMPLETED, started, previous is not None)

    def _validate(self) -> None:
        if self._history_years_back <= 0:
            raise IngestionConfigurationError("HISTORY_YEARS_BACK must be positive")
        if self._window_delay_seconds < 0:
            raise IngestionConfigurationError("INGESTION_WINDOW_DELAY_SECONDS must not be negative")

    def _history_start(self, now: datetime) -> datetime:
        return months_before(now, 12 * max(self._history_years_back, 0))

    async def _walk(self, state: _RunState, history_start: datetime) -> None:
        window_end = state.window_cursor
        while window_end > history_start:
            if self._stop_event.is_set():
                state.stopped = True
                logger.info("Ingestion stopping before next window", window_end=window_end.isoformat())
                return

            window_start = max(months_before(window_end, 1), history_start)
            finished = await self._process_window(state, window_start, window_end)
            if not finished:
                return

            state.window_cursor = window_start
            await self._checkpoints.update_progress(
                state.checkpoint.id, state.window_cursor, state.records_processed
            )
            window_end = window_start

    async def _process_window(
        self, state: _RunState, window_start: datetime, window_end: datetime
    ) -> bool:
        """
        Ingest every page of one window.

        Returns False only when a stop request interrupted the window, in
        which case the cursor stays at window_end so a resumed run redoes it.
        """
        page_token: str | None = None
        records_in_window = 0

        while True:
            if state.page_requests:
                await self._pause()
                if self._stop_event.is_set():
                    state.stopped = True
                    logger.info(
                        "Ingestion stopping",
                        window_start=window_start.isoformat(),
                        records_in_window=records_in_window,
                    )
                    return False
            state.page_requests += 1

            try:
                page = await self._transport.list_outbound_records(
                    window_start, window_end, page_token
                )
            except TransportAuthError:
                raise
            except TransportError as e:
                state.windows_failed += 1
                state.failed_windows.append(window_start.date().isoformat())
                logger.warning(
                    "Transport error, skipping window",
                    window_start=window_start.isoformat(),
                    window_end=window_end.isoformat(),
                    error=str(e),
                    status_code=e.status_code,
                )
                return True

            for record in page.records:
                await self._ingest(state, record)
            records_in_window += len(page.records)

            await self._checkpoints.update_progress(
                state.checkpoint.id, window_end, state.records_processed
            )

            if not page.next_page_token:
                break
            page_token = page.next_page_token

        state.windows_processed += 1
        logger.info(
            "Window processed",
            window_start=window_start.isoformat(),
            window_end=window_end.isoformat(),
            records_in_window=records_in_window,
            records_processed=state.records_processed,
        )
        return True

    async def _pause(self) -> None:
        """Inter-page delay. Returns early when a stop is requested."""
        if self._window_delay_seconds <= 0 or self._stop_event.is_set():
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._window_delay_seconds)
        except TimeoutError:
            return

    def _primary_counterpart(self, recipients: list[str]) -> NormalizedKey | None:
        for raw in recipients or []:
            key = normalize(raw)
            if key.key and key.key not in self._self_keys:
                return key
        return None

    async def _ingest(self, state: _RunState, record: OutboundRecord) -> None:
        try:
            if await self._relationships.record_exists(record.id):
                state.duplicates_skipped += 1
                return
        except DatabaseError as e:
            state.records_failed += 1
            logger.error("Duplicate check failed, skipping record", external_id=record.id, error=str(e))
            return

        counterpart = self._primary_counterpart(record.to)
        if counterpart is None:
            state.records_without_counterpart += 1
            logger.debug("Record has no counterpart, skipping", external_id=record.id)
            return

        tier = classify(record.sent_at, state.now)
        content, summary = await retained_text(tier, record.subject, record.body, self._summarizer)
        display_name = counterpart.display_hint or await state.names.resolve_display_name(
            counterpart.key
        )

        communication = CommunicationRecord(
            external_id=record.id,
            sent_at=record.sent_at,
            storage_tier=tier,
            channel=self._channel,
            thread_id=record.thread_id,
            subject=record.subject,
            content=content,
            summary=summary,
            word_count=word_count(record.body),
        )

        try:
            inserted = await self._relationships.ingest_record(
                counterpart.key, display_name, communication
            )
        except DatabaseError as e:
            state.records_failed += 1
            logger.error(
                "Failed to persist record, skipping",
                external_id=record.id,
                counterpart_key=counterpart.key,
                operation=e.operation,
                error=str(e),
            )
            return

        if inserted:
            state.records_processed += 1
        else:
            state.duplicates_skipped += 1

    async def _score_best_effort(self, now: datetime) -> None:
        """Refresh scores so partial results stay queryable; failure here is logged only."""
        try:
            await self._scorer.recompute_scores(now)
        except Exception as e:
            logger.error("Scoring after partial run failed", run_type=self._run_type, error=str(e))

    def _result(
        self,
        state: _RunState,
        status: RunStatus,
        started: float,
        resumed: bool,
        error: str | None = None,
    ) -> IngestionResult:
        result = IngestionResult(
            run_type=self._run_type,
            status=status,
            records_processed=state.records_processed,
            windows_processed=state.windows_processed,
            windows_failed=state.windows_failed,
            duration_seconds=round(time.monotonic() - started, 3),
            error=error,
            checkpoint_id=state.checkpoint.id,
            resumed=resumed,
            duplicates_skipped=state.duplicates_skipped,
            records_failed=state.records_failed,
            records_without_counterpart=state.records_without_counterpart,
        )
        logger.info(
            "Ingestion run finished",
            run_type=result.run_type,
            status=result.status,
            records_processed=result.records_processed,
            windows_processed=result.windows_processed,
            windows_failed=result.windows_failed,
            failed_windows=state.failed_windows[:10],
            duplicates_skipped=result.duplicates_skipped,
            records_failed=result.records_failed,
            duration_seconds=result.duration_seconds,
            error=error,
        )
        return result
