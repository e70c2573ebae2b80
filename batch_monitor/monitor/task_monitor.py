"""State machine that owns the lifecycle of one remote batch job.

The monitor submits the job, polls ``/status/{task_id}`` on a fixed interval,
feeds the cumulative log through a :class:`LogTimeline`, and stops polling as
soon as the job reaches a terminal status, the user cancels, or too many polls
in a row fail.  Rendering code only ever reads :meth:`TaskMonitor.current_view`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import httpx

from batch_monitor.client import APIRequestError, BatchAPIClient
from batch_monitor.monitor.errors import (
    CircuitBreakerError,
    MonitorError,
    PollError,
    RemoteJobError,
    SubmissionError,
    ValidationError,
)
from batch_monitor.monitor.models import (
    ConnectionHealth,
    JobSubmission,
    MonitorState,
    Severity,
    TaskHandle,
    TaskStatusSnapshot,
    TaskView,
)
from batch_monitor.monitor.prober import ConnectivityProber
from batch_monitor.monitor.reconciler import LogTimeline
from batch_monitor.monitor.scheduler import PollScheduler, TimerHandle

logger = logging.getLogger(__name__)

ViewListener = Callable[[TaskView], None]

_REQUEST_ERRORS = (httpx.HTTPError, APIRequestError, ValueError)


@dataclass(frozen=True)
class MonitorSettings:
    poll_interval_seconds: float = 5.0
    first_poll_delay_seconds: float = 3.0
    require_connectivity_check: bool = True
    max_consecutive_errors: int = 3


def _describe(exc: Exception) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _optional_float(payload: Dict[str, Any], key: str) -> Optional[float]:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class TaskMonitor:
    def __init__(
        self,
        client: BatchAPIClient,
        scheduler: PollScheduler,
        settings: MonitorSettings | None = None,
        prober: ConnectivityProber | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._client = client
        self._scheduler = scheduler
        self.settings = settings or MonitorSettings()
        self._prober = prober
        self._timeline = LogTimeline(clock)
        self._state = MonitorState.IDLE
        self._task_id: Optional[str] = None
        self._snapshot: Optional[TaskStatusSnapshot] = None
        self._download_url: Optional[str] = None
        self._error_message: Optional[str] = None
        self.last_error: Optional[MonitorError] = None
        self._poll_timer: Optional[TimerHandle] = None
        self._first_poll_timer: Optional[TimerHandle] = None
        self._polling_task_id: Optional[str] = None
        self._consecutive_failures = 0
        self._listeners: List[ViewListener] = []
        self._closed = False

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def connection(self) -> ConnectionHealth:
        if self._prober is None:
            return ConnectionHealth.CHECKING
        return self._prober.health

    @property
    def has_active_timer(self) -> bool:
        return self._poll_timer is not None or self._first_poll_timer is not None

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def consumed_log_count(self) -> int:
        return self._timeline.consumed_count

    def add_listener(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    def current_view(self) -> TaskView:
        return TaskView(
            state=self._state,
            connection=self.connection,
            task_id=self._task_id,
            snapshot=self._snapshot,
            timeline=self._timeline.entries,
            download_url=self._download_url,
            error_message=self._error_message,
        )

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.current_view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:  # noqa: BLE001
                logger.exception("Task view listener failed")

    def _stop_timers(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
        if self._first_poll_timer is not None:
            self._first_poll_timer.cancel()
            self._first_poll_timer = None

    def _reject(self, message: str) -> None:
        logger.info("Submission rejected: %s", message)
        self._error_message = message
        self._notify()
        raise ValidationError(message)

    def _validate(self, submission: JobSubmission) -> None:
        if self._closed:
            self._reject("The monitor has been shut down")
        if self._state is MonitorState.SUBMITTING:
            self._reject("A submission is already in progress")
        if submission.document is None:
            self._reject("Select a spreadsheet file before starting")
        if not submission.submitter_name.strip():
            self._reject("Enter the submitter name")
        if self.settings.require_connectivity_check and (
            self.connection is not ConnectionHealth.CONNECTED
        ):
            detail = ""
            if self._prober is not None and self._prober.result is not None:
                detail = self._prober.result.detail or ""
            suffix = f" ({detail})" if detail else ""
            self._reject(f"The processing service is not connected{suffix}")

    def _reset_for_new_job(self) -> None:
        self._stop_timers()
        self._timeline.clear()
        self._task_id = None
        self._snapshot = None
        self._download_url = None
        self._error_message = None
        self.last_error = None
        self._consecutive_failures = 0

    async def submit(self, submission: JobSubmission) -> TaskHandle:
        self._validate(submission)
        self._reset_for_new_job()
        self._state = MonitorState.SUBMITTING
        self._timeline.append("📤 Uploading file and starting job...", Severity.INFO)
        self._notify()

        assert submission.document is not None
        submitter_name = submission.submitter_name.strip()
        logger.info(
            "Submitting %s (%s) for %s",
            submission.document.filename,
            submission.affiliation_type.value,
            submitter_name,
        )
        try:
            payload = await self._client.submit_job(
                submission.document,
                submission.affiliation_type.value,
                submitter_name,
            )
        except _REQUEST_ERRORS as exc:
            error = SubmissionError(_describe(exc))
            self._fail_submission(error)
            raise error from exc

        task_id = payload.get("task_id")
        if not task_id:
            error = SubmissionError("No task identifier received")
            self._fail_submission(error)
            raise error

        handle = TaskHandle(
            task_id=str(task_id),
            total_records=_optional_int(payload, "total_records"),
            estimated_time_minutes=_optional_float(payload, "estimated_time_minutes"),
        )
        self._task_id = handle.task_id
        self._timeline.append(
            f"✅ Job started! Task ID: {handle.task_id}", Severity.SUCCESS
        )
        if handle.total_records is not None:
            self._timeline.append(f"📊 Total records: {handle.total_records}")
        if handle.estimated_time_minutes is not None:
            minutes = math.ceil(handle.estimated_time_minutes)
            self._timeline.append(f"⏱️ Estimated time: {minutes} minutes")
        logger.info("Job accepted with task id %s", handle.task_id)

        if self._closed:
            return handle
        self._state = MonitorState.MONITORING
        self._start_polling()
        self._notify()
        return handle

    def _fail_submission(self, error: SubmissionError) -> None:
        message = str(error) or "Unknown error"
        logger.warning("Submission failed: %s", message)
        self._state = MonitorState.ERRORED
        self._error_message = f"Error starting job: {message}"
        self.last_error = error
        self._timeline.append(f"🚨 Error: {message}", Severity.ERROR)
        self._notify()

    def _start_polling(self) -> None:
        self._stop_timers()
        self._poll_timer = self._scheduler.every(
            self.settings.poll_interval_seconds, self.poll_now
        )
        self._first_poll_timer = self._scheduler.once(
            self.settings.first_poll_delay_seconds, self._first_poll
        )

    async def _first_poll(self) -> None:
        self._first_poll_timer = None
        await self.poll_now()

    def _is_current(self, task_id: str) -> bool:
        return (
            not self._closed
            and self._state is MonitorState.MONITORING
            and self._task_id == task_id
        )

    async def poll_now(self) -> None:
        if self._closed or self._task_id is None:
            return
        if self._state is not MonitorState.MONITORING:
            return
        task_id = self._task_id
        if self._polling_task_id == task_id:
            logger.debug("Poll already in flight for %s; skipping tick", task_id)
            return
        self._polling_task_id = task_id
        try:
            try:
                payload = await self._client.get_task_status(task_id)
            except _REQUEST_ERRORS as exc:
                if self._is_current(task_id):
                    self._record_poll_failure(PollError(_describe(exc)))
                return
            if not self._is_current(task_id):
                logger.debug("Discarding status for stale task %s", task_id)
                return
            self._apply_snapshot(TaskStatusSnapshot.from_payload(payload))
        finally:
            # a poll for an earlier task must not clear the guard of the current one
            if self._polling_task_id == task_id:
                self._polling_task_id = None

    def _record_poll_failure(self, error: PollError) -> None:
        self._consecutive_failures += 1
        logger.warning(
            "Status fetch for %s failed (%d in a row): %s",
            self._task_id,
            self._consecutive_failures,
            error,
        )
        self._timeline.append(f"Error fetching status: {error}", Severity.ERROR)
        if self._consecutive_failures >= self.settings.max_consecutive_errors:
            breaker = CircuitBreakerError(self._consecutive_failures)
            self._enter_errored(breaker, str(breaker), f"🚨 {breaker}")
            return
        self._notify()

    def _apply_snapshot(self, snapshot: TaskStatusSnapshot) -> None:
        self._consecutive_failures = 0
        self._timeline.absorb(snapshot.logs)
        self._snapshot = snapshot
        if snapshot.status == "completed":
            self._timeline.append(
                f"🎉 Job completed! {snapshot.successful_records} successful, "
                f"{snapshot.error_records} errors",
                Severity.SUCCESS,
            )
            if snapshot.result_file_url:
                self._download_url = self._client.download_url(
                    snapshot.result_file_url
                )
            self._stop_timers()
            self._state = MonitorState.COMPLETED
            logger.info("Task %s completed", self._task_id)
        elif snapshot.status == "error":
            message = snapshot.message or "The job reported an error"
            self._enter_errored(
                RemoteJobError(message), message, f"🚨 Job failed: {message}"
            )
            return
        self._notify()

    def _enter_errored(self, error: MonitorError, banner: str, entry: str) -> None:
        self._stop_timers()
        self._state = MonitorState.ERRORED
        self._error_message = banner
        self.last_error = error
        self._timeline.append(entry, Severity.ERROR)
        logger.warning("Task %s stopped with error: %s", self._task_id, banner)
        self._notify()

    def cancel(self) -> None:
        if self._state is not MonitorState.MONITORING:
            return
        self._stop_timers()
        self._state = MonitorState.IDLE
        self._timeline.append("🛑 Monitoring stopped manually", Severity.WARNING)
        logger.info("Monitoring of %s stopped manually", self._task_id)
        self._notify()

    def shutdown(self) -> None:
        """Stop all timers for good; late responses are dropped afterwards."""
        self._closed = True
        self._stop_timers()
        self._listeners.clear()
