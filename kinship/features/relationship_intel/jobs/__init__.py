from .history_job import ingest_email_history, run_email_history_job
from .message_history_job import ingest_message_history, run_message_history_job
from .rescore_job import run_rescore_job

__all__ = [
    "ingest_email_history",
    "ingest_message_history",
    "run_email_history_job",
    "run_message_history_job",
    "run_rescore_job",
]
