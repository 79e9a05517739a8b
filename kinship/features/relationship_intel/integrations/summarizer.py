"""
OpenAI-backed summarizer for summary-tier records.
"""

import asyncio

import openai
from openai import AsyncOpenAI

from kinship.config import settings
from kinship.features.relationship_intel.errors import SummarizationError
from kinship.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

BODY_CHAR_LIMIT = 1000
MAX_SUMMARY_TOKENS = 100
SUMMARY_TEMPERATURE = 0.3
MAX_ATTEMPTS = 2

SUMMARY_PROMPT = """Summarize this email in 1-2 sentences, focusing on key topics and purpose:

Subject: {subject}
Content: {body}

Summary:"""


class OpenAISummarizer:
    """
    One chat completion per record, body truncated to 1000 characters.

    Raises SummarizationError when no usable summary comes back; the tier
    policy then falls back to the subject or a body excerpt.
    """

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        if client is None:
            if not settings.OPENAI_API_KEY:
                raise SummarizationError("OPENAI_API_KEY not configured", recoverable=False)
            client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT_SECONDS
            )
        self.client = client
        self.model = model or settings.OPENAI_MODEL

    async def summarize(self, subject: str | None, body: str) -> str:
        prompt = SUMMARY_PROMPT.format(subject=subject or "", body=body[:BODY_CHAR_LIMIT])

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=MAX_SUMMARY_TOKENS,
                    temperature=SUMMARY_TEMPERATURE,
                )
            except openai.RateLimitError as e:
                if attempt >= MAX_ATTEMPTS:
                    raise SummarizationError(f"OpenAI rate limited: {e}") from e
                wait_time = 2**attempt
                logger.warning(
                    "OpenAI rate limit hit, retrying", attempt=attempt, wait_time=wait_time
                )
                await asyncio.sleep(wait_time)
                continue
            except openai.APIError as e:
                logger.warning("OpenAI summarization failed", attempt=attempt, error=str(e))
                raise SummarizationError(f"OpenAI API error: {e}") from e

            if not response.choices or not response.choices[0].message.content:
                raise SummarizationError("Empty response from OpenAI API")
            return response.choices[0].message.content.strip()

        raise SummarizationError("Summarization attempts exhausted")
