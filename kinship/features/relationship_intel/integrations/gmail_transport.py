"""
Gmail sent-mail transport.

Lists sent messages for a time window through the Gmail REST API and fetches
each one for its recipients, subject and plain-text body.
"""

import asyncio
import base64
import binascii
from datetime import UTC, datetime
from typing import Any

import httpx

from kinship.config import settings
from kinship.features.relationship_intel.domain import OutboundPage, OutboundRecord
from kinship.features.relationship_intel.errors import TransportAuthError, TransportError
from kinship.features.relationship_intel.identity import split_recipients
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
GMAIL_USER_ID = "me"

REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
AUTH_STATUS_CODES = {401, 403}


def build_sent_query(window_start: datetime, window_end: datetime) -> str:
    """Gmail search for mail sent in [window_start, window_end), using epoch seconds."""
    return f"in:sent after:{int(window_start.timestamp())} before:{int(window_end.timestamp())}"


def _decode_body_data(data: str | None) -> str:
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_plain_text(payload: dict[str, Any]) -> str:
    """Concatenate the text/plain parts of a message payload, depth first."""
    if payload.get("mimeType") == "text/plain":
        return _decode_body_data(payload.get("body", {}).get("data"))

    texts = [extract_plain_text(part) for part in payload.get("parts", []) or []]
    return "\n".join(text for text in texts if text)


class GmailOutboundTransport:
    """
    Transport over the authenticated user's sent mail.

    401/403 raise TransportAuthError and end the run; 429 and 5xx are retried
    with exponential backoff before surfacing as TransportError.
    """

    def __init__(
        self,
        access_token: str | None = None,
        page_size: int | None = None,
        client: httpx.AsyncClient | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        self._access_token = access_token or settings.GMAIL_ACCESS_TOKEN
        self._page_size = page_size or settings.INGESTION_PAGE_SIZE
        self._client = client or self._create_client()
        self._backoff_factor = backoff_factor

    def _create_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        await self._client.aclose()

    def _get_auth_headers(self) -> dict:
        if not self._access_token:
            raise TransportAuthError("Gmail access token is not configured")
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                if attempt >= MAX_RETRIES:
                    raise TransportError(f"Gmail API unreachable: {e}") from e
                backoff = self._backoff_factor * (2 ** (attempt - 1))
                logger.debug(
                    "Gmail API request error, retrying",
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                backoff = self._backoff_factor * (2 ** (attempt - 1))
                logger.debug(
                    "Gmail API retrying request",
                    attempt=attempt,
                    status_code=response.status_code,
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
                continue
            return response

        raise TransportError("Gmail API retry loop exhausted")

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                raise TransportError(
                    f"Invalid Gmail {operation} response: {e}", operation=operation
                ) from e

        try:
            error_message = response.json().get("error", {}).get("message", "")
        except ValueError:
            error_message = response.text[:200] if response.text else ""

        logger.warning(
            f"Gmail API {operation} failed",
            status_code=response.status_code,
            error_message=error_message,
        )

        if response.status_code in AUTH_STATUS_CODES:
            raise TransportAuthError(
                f"Gmail authorization failed (HTTP {response.status_code}): {error_message}",
                operation=operation,
                status_code=response.status_code,
            )
        raise TransportError(
            f"Gmail API error (HTTP {response.status_code}): {error_message}",
            operation=operation,
            status_code=response.status_code,
        )

    async def list_outbound_records(
        self,
        window_start: datetime,
        window_end: datetime,
        page_token: str | None = None,
    ) -> OutboundPage:
        headers = self._get_auth_headers()
        params: dict[str, Any] = {
            "q": build_sent_query(window_start, window_end),
            "maxResults": self._page_size,
        }
        if page_token:
            params["pageToken"] = page_token

        response = await self._request_with_retry(
            "GET",
            f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/messages",
            headers=headers,
            params=params,
        )
        listing = self._handle_api_response(response, "list_messages")

        records = []
        for ref in listing.get("messages", []) or []:
            message_id = ref.get("id")
            if not message_id:
                logger.warning("Gmail listing entry without id, skipping", entry=ref)
                continue
            record = await self._fetch_message(message_id, headers)
            if record:
                records.append(record)

        logger.debug(
            "Gmail sent page fetched",
            window_start=window_start.isoformat(),
            records=len(records),
            has_next_page=bool(listing.get("nextPageToken")),
        )
        return OutboundPage(records=records, next_page_token=listing.get("nextPageToken"))

    async def _fetch_message(self, message_id: str, headers: dict) -> OutboundRecord | None:
        response = await self._request_with_retry(
            "GET",
            f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/messages/{message_id}",
            headers=headers,
            params={"format": "full"},
        )
        if response.status_code == 404:
            logger.debug("Gmail message disappeared, skipping", message_id=message_id)
            return None

        message = self._handle_api_response(response, "get_message")
        try:
            return self._message_to_record(message)
        except (binascii.Error, ValueError, KeyError, TypeError) as e:
            # One malformed message must not end the window.
            logger.warning(
                "Malformed Gmail message, skipping",
                message_id=message_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    @staticmethod
    def _message_to_record(message: dict[str, Any]) -> OutboundRecord | None:
        payload = message.get("payload", {}) or {}
        header_values = {
            header.get("name", "").lower(): header.get("value", "")
            for header in payload.get("headers", []) or []
        }

        internal_date = message.get("internalDate")
        if not internal_date:
            return None

        body = extract_plain_text(payload) or message.get("snippet") or ""
        return OutboundRecord(
            id=message["id"],
            to=split_recipients(header_values.get("to")) + split_recipients(header_values.get("cc")),
            subject=header_values.get("subject") or None,
            body=body,
            sent_at=datetime.fromtimestamp(int(internal_date) / 1000, tz=UTC),
            thread_id=message.get("threadId"),
        )
