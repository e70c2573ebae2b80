"""Task monitoring core: connectivity probe, log reconciler and state machine."""

from __future__ import annotations

from batch_monitor.monitor.errors import (
    CircuitBreakerError,
    MonitorError,
    PollError,
    RemoteJobError,
    SubmissionError,
    ValidationError,
)
from batch_monitor.monitor.models import (
    AffiliationType,
    ConnectionHealth,
    JobSubmission,
    LogEntry,
    MonitorState,
    Severity,
    TaskHandle,
    TaskStatusSnapshot,
    TaskView,
)
from batch_monitor.monitor.prober import ConnectivityProber
from batch_monitor.monitor.reconciler import LogTimeline, reconcile
from batch_monitor.monitor.scheduler import AsyncioScheduler, PollScheduler
from batch_monitor.monitor.task_monitor import MonitorSettings, TaskMonitor

__all__ = [
    "AffiliationType",
    "AsyncioScheduler",
    "CircuitBreakerError",
    "ConnectionHealth",
    "ConnectivityProber",
    "JobSubmission",
    "LogEntry",
    "LogTimeline",
    "MonitorError",
    "MonitorSettings",
    "MonitorState",
    "PollError",
    "PollScheduler",
    "RemoteJobError",
    "Severity",
    "SubmissionError",
    "TaskHandle",
    "TaskMonitor",
    "TaskStatusSnapshot",
    "TaskView",
    "ValidationError",
    "reconcile",
]
