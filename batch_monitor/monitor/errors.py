"""Error taxonomy for the task monitor."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for every error the task monitor surfaces."""


class ValidationError(MonitorError):
    """Submission rejected before any network call."""


class SubmissionError(MonitorError):
    """The job could not be created on the remote service."""


class PollError(MonitorError):
    """A single status fetch failed; retried on the next tick."""


class CircuitBreakerError(MonitorError):
    """Too many consecutive poll failures; monitoring stopped for good."""

    def __init__(self, failures: int) -> None:
        super().__init__(
            f"Too many connection errors ({failures} in a row); monitoring stopped"
        )
        self.failures = failures


class RemoteJobError(MonitorError):
    """The remote job itself reported an error status."""


__all__ = [
    "CircuitBreakerError",
    "MonitorError",
    "PollError",
    "RemoteJobError",
    "SubmissionError",
    "ValidationError",
]
