"""Value types shared by the task monitor and the UI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from batch_monitor.client import UploadFilePayload


class AffiliationType(str, Enum):
    EXPRESS = "express"
    JUNIOR_SUITE = "junior"

    @property
    def label(self) -> str:
        return "Express" if self is AffiliationType.EXPRESS else "Junior Suite"


class MonitorState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    MONITORING = "monitoring"
    COMPLETED = "completed"
    ERRORED = "errored"


class ConnectionHealth(str, Enum):
    CHECKING = "checking"
    CONNECTED = "connected"
    ERROR = "error"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


TASK_STATUSES = ("queued", "processing", "completed", "error")
TERMINAL_STATUSES = {"completed", "error"}


@dataclass(frozen=True)
class JobSubmission:
    document: Optional[UploadFilePayload]
    affiliation_type: AffiliationType
    submitter_name: str


@dataclass(frozen=True)
class TaskHandle:
    task_id: str
    total_records: Optional[int] = None
    estimated_time_minutes: Optional[float] = None


@dataclass(frozen=True)
class HealthResult:
    health: ConnectionHealth
    detail: Optional[str] = None


def _count(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(int(value), 0)


def _optional_text(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    text = str(value)
    return text or None


@dataclass(frozen=True)
class TaskStatusSnapshot:
    """One poll response; replaced wholesale by the next one."""

    status: str = "queued"
    progress: Optional[float] = None
    processed_records: int = 0
    total_records: int = 0
    successful_records: int = 0
    error_records: int = 0
    current_processing: Optional[str] = None
    logs: Tuple[Any, ...] = ()
    result_file_url: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TaskStatusSnapshot:
        status = str(payload.get("status") or "queued").lower()
        if status not in TASK_STATUSES:
            status = "queued"
        progress_value = payload.get("progress")
        progress: Optional[float] = None
        if isinstance(progress_value, (int, float)) and not isinstance(
            progress_value, bool
        ):
            progress = min(max(float(progress_value), 0.0), 100.0)
        logs_value = payload.get("logs")
        logs = tuple(logs_value) if isinstance(logs_value, list) else ()
        return cls(
            status=status,
            progress=progress,
            processed_records=_count(payload, "processed_records"),
            total_records=_count(payload, "total_records"),
            successful_records=_count(payload, "successful_records"),
            error_records=_count(payload, "error_records"),
            current_processing=_optional_text(payload, "current_processing"),
            logs=logs,
            result_file_url=_optional_text(payload, "result_file_url"),
            message=_optional_text(payload, "message"),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def processing_label(self) -> Optional[str]:
        if self.status != "processing":
            return None
        return self.current_processing


@dataclass(frozen=True)
class LogEntry:
    id: int
    timestamp: datetime
    message: str
    severity: Severity


@dataclass(frozen=True)
class TaskView:
    """Read-only projection of the monitor used for rendering."""

    state: MonitorState
    connection: ConnectionHealth
    task_id: Optional[str] = None
    snapshot: Optional[TaskStatusSnapshot] = None
    timeline: Tuple[LogEntry, ...] = field(default_factory=tuple)
    download_url: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        return self.state in {MonitorState.SUBMITTING, MonitorState.MONITORING}

