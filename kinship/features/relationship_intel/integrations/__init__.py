"""
Adapters for the outbound channels and the summarization service.
"""

from .gmail_transport import GmailOutboundTransport
from .message_store import MessageStore, MessageStoreTransport
from .summarizer import OpenAISummarizer
from .timestamps import apple_time_to_datetime, datetime_to_apple_time

__all__ = [
    "GmailOutboundTransport",
    "MessageStore",
    "MessageStoreTransport",
    "OpenAISummarizer",
    "apple_time_to_datetime",
    "datetime_to_apple_time",
]
