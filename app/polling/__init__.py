"""
app/polling package marker.
"""

from app.polling.backoff_poller import BackoffPoller, PollerRegistry, backoff_delay
from app.polling.status_client import (
    ImportStatusClient,
    StatusClientError,
    build_job_watcher,
    is_job_terminal,
    is_version_terminal,
)

__all__ = [
    "BackoffPoller",
    "ImportStatusClient",
    "PollerRegistry",
    "StatusClientError",
    "backoff_delay",
    "build_job_watcher",
    "is_job_terminal",
    "is_version_terminal",
]
