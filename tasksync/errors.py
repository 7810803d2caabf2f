"""Failure taxonomy for the submit → poll protocol.

None of these are retried by this package; they propagate to the caller with a
human-readable message. Per-record failures inside a returned result set are
data and are never raised.
"""


class TaskSyncError(Exception):
    """Base class for every task sync failure."""


class ConfigError(TaskSyncError):
    """A required endpoint or the webhook URL is missing or blank."""


class ProtocolError(TaskSyncError):
    """The remote side broke the 202/2xx contract, e.g. a 202 without a jobId."""


class RemoteError(TaskSyncError):
    """Non-2xx response from the trigger or status endpoint."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class NotFoundError(TaskSyncError):
    """The status endpoint answered 404 for the job."""


class PollTimeoutError(TaskSyncError, TimeoutError):
    """Poll attempts were exhausted without a terminal status.

    Not a definite failure: the job may still finish upstream.
    """
