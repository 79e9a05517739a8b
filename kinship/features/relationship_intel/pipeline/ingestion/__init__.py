"""
Ingestion stage: transport pages in, tiered records and relationships out.
"""

from .service import (
    RUN_TYPE_EMAIL_HISTORY,
    RUN_TYPE_MESSAGE_HISTORY,
    STOPPED_MESSAGE,
    IngestionPipeline,
    IngestionResult,
    OutboundTransport,
    months_before,
)
from .tiering import Summarizer, classify, fallback_summary, retained_text, whole_months_between

__all__ = [
    "RUN_TYPE_EMAIL_HISTORY",
    "RUN_TYPE_MESSAGE_HISTORY",
    "STOPPED_MESSAGE",
    "IngestionPipeline",
    "IngestionResult",
    "OutboundTransport",
    "Summarizer",
    "classify",
    "fallback_summary",
    "months_before",
    "retained_text",
    "whole_months_between",
]
