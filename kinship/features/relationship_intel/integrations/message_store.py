"""
Sent-message channel adapter.

Adapts a paginated message-store query surface (rows keyed by Apple-epoch
dates) to the same transport protocol the email channel uses.
"""

import sqlite3
from datetime import datetime
from typing import Any, Protocol

from kinship.config import settings
from kinship.features.relationship_intel.domain import OutboundPage, OutboundRecord
from kinship.features.relationship_intel.errors import TransportError
from kinship.infrastructure.observability.logging import get_logger

from .timestamps import apple_time_to_datetime, datetime_to_apple_time

logger = get_logger(__name__)

MESSAGE_LABEL = "Message"


class MessageStore(Protocol):
    async def fetch_sent_messages(
        self, start: int, end: int, offset: int, limit: int
    ) -> list[dict[str, Any]]:
        """
        Rows sent by the owner with start <= date < end, oldest first.

        Each row carries guid, handle (recipient identifier), text, date
        (Apple epoch) and optionally chat_identifier and service.

        A failed query raises OSError, RuntimeError or sqlite3.Error; the
        transport turns those into TransportError so only the window is lost.
        """
        ...


class MessageStoreTransport:
    """Pages sent messages by offset; the page token is the next offset."""

    def __init__(self, store: MessageStore, page_size: int | None = None):
        self._store = store
        self._page_size = page_size or settings.INGESTION_PAGE_SIZE

    async def list_outbound_records(
        self,
        window_start: datetime,
        window_end: datetime,
        page_token: str | None = None,
    ) -> OutboundPage:
        try:
            offset = int(page_token) if page_token else 0
        except ValueError as e:
            raise TransportError(f"Invalid page token: {page_token!r}") from e

        try:
            rows = await self._store.fetch_sent_messages(
                datetime_to_apple_time(window_start),
                datetime_to_apple_time(window_end),
                offset,
                self._page_size,
            )
        except (OSError, RuntimeError, sqlite3.Error) as e:
            logger.warning(
                "Message store query failed",
                window_start=window_start.isoformat(),
                offset=offset,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise TransportError(f"Message store query failed: {e}") from e

        records = [record for record in (self._row_to_record(row) for row in rows) if record]
        next_token = str(offset + len(rows)) if len(rows) >= self._page_size else None
        return OutboundPage(records=records, next_page_token=next_token)

    @staticmethod
    def _row_to_record(row: dict[str, Any]) -> OutboundRecord | None:
        sent_at = apple_time_to_datetime(row.get("date"))
        guid = row.get("guid")
        if not guid or sent_at is None:
            logger.debug("Skipping message row without guid or date")
            return None

        handles = row.get("handles") or [row.get("handle")]
        return OutboundRecord(
            id=f"msg:{guid}",
            to=[handle for handle in handles if handle],
            subject=row.get("service") or MESSAGE_LABEL,
            body=row.get("text"),
            sent_at=sent_at,
            thread_id=row.get("chat_identifier"),
        )
