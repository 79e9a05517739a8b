"""
Exceptions shared across the relationship intelligence layers.

Transports, the summarizer and the pipeline raise these so callers can tell a
skippable failure (recoverable=True) from one that must end the run.
"""


class TransportError(Exception):
    """A transport could not return a page for the requested window."""

    def __init__(
        self,
        message: str,
        operation: str = "list_outbound_records",
        recoverable: bool = True,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable
        self.status_code = status_code


class TransportAuthError(TransportError):
    """Credentials are missing, expired or rejected. Never retried."""

    def __init__(self, message: str, operation: str = "authenticate", status_code: int | None = None):
        super().__init__(message, operation=operation, recoverable=False, status_code=status_code)


class SummarizationError(Exception):
    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class PipelineAlreadyRunningError(Exception):
    """Another run of the same run type holds the running checkpoint."""

    def __init__(self, run_type: str):
        super().__init__(f"A '{run_type}' run is already in progress")
        self.run_type = run_type
        self.operation = "start_run"
        self.recoverable = False


class IngestionConfigurationError(Exception):
    """The pipeline cannot run with the current settings."""

    def __init__(self, message: str, operation: str = "configure"):
        super().__init__(message)
        self.operation = operation
        self.recoverable = False
