"""NiceGUI layout for submitting batch jobs and following their progress."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import PurePath
from typing import Any, Callable, Coroutine, Dict, List, Optional

from nicegui import ui
from nicegui.events import MultiUploadEventArguments

from batch_monitor.client import BatchAPIClient, UploadFilePayload
from batch_monitor.monitor.errors import SubmissionError, ValidationError
from batch_monitor.monitor.models import (
    AffiliationType,
    ConnectionHealth,
    JobSubmission,
    LogEntry,
    MonitorState,
    Severity,
    TaskStatusSnapshot,
    TaskView,
)
from batch_monitor.monitor.prober import ConnectivityProber
from batch_monitor.monitor.scheduler import PollCallback
from batch_monitor.monitor.task_monitor import TaskMonitor
from batch_monitor.ui.settings import UISettings

SPREADSHEET_EXTENSIONS = (".xlsx", ".xls")
SPREADSHEET_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}

_STATUS_BADGE_STYLES: Dict[str, str] = {
    "queued": "bg-amber-100 text-amber-700",
    "processing": "bg-blue-100 text-blue-700",
    "completed": "bg-emerald-100 text-emerald-700",
    "error": "bg-rose-100 text-rose-700",
}

_LOG_ICONS: Dict[Severity, str] = {
    Severity.SUCCESS: "✅",
    Severity.ERROR: "❌",
    Severity.WARNING: "⚠️",
    Severity.INFO: "📝",
}

_LOG_COLORS: Dict[Severity, str] = {
    Severity.SUCCESS: "text-emerald-600",
    Severity.ERROR: "text-rose-600",
    Severity.WARNING: "text-amber-600",
    Severity.INFO: "text-gray-700",
}

_CONNECTION_LABELS: Dict[ConnectionHealth, tuple[str, str]] = {
    ConnectionHealth.CHECKING: ("Checking server...", "text-gray-500"),
    ConnectionHealth.CONNECTED: ("Server connected", "text-emerald-500"),
    ConnectionHealth.ERROR: ("Server unreachable", "text-red-500"),
}


def _schedule_async(factory: Callable[[], Coroutine[Any, Any, Any]]) -> None:
    """Enqueue a coroutine via a one-shot NiceGUI timer so the event loop is active."""
    ui.timer(0, lambda: asyncio.create_task(factory()), once=True)


logger = logging.getLogger(__name__)
_BM_UI_DEBUG_REFRESH = bool(os.getenv("BM_UI_DEBUG_REFRESH"))


def _set_text_if_changed(el: Any, value: str) -> None:
    """Set element text only when it changes to avoid UI flicker from poll re-renders."""
    normalized = "" if value is None else str(value)
    previous = getattr(el, "_bm_last_text", None)
    if previous == normalized:
        return
    setattr(el, "_bm_last_text", normalized)
    if _BM_UI_DEBUG_REFRESH:
        logger.debug(
            "UI text update on %s: %r -> %r", type(el).__name__, previous, value
        )
    if hasattr(el, "set_text"):
        el.set_text(value)
    elif hasattr(el, "text"):
        el.text = value
    elif hasattr(el, "content"):
        el.content = value


def _set_visibility_if_changed(el: Any, visible: bool) -> None:
    current = getattr(el, "_bm_last_visible", None)
    if current == visible:
        return
    setattr(el, "_bm_last_visible", visible)
    if _BM_UI_DEBUG_REFRESH:
        logger.debug(
            "UI visibility update on %s: %r -> %r",
            type(el).__name__,
            current,
            visible,
        )
    if hasattr(el, "set_visibility"):
        el.set_visibility(visible)
    else:
        setattr(el, "visible", visible)


def _set_classes_if_changed(el: Any, classes: str) -> None:
    current = getattr(el, "_bm_last_classes", None)
    if current == classes:
        return
    setattr(el, "_bm_last_classes", classes)
    if _BM_UI_DEBUG_REFRESH:
        logger.debug(
            "UI class update on %s: %r -> %r", type(el).__name__, current, classes
        )
    el.classes(replace=classes)


def _scroll_to_bottom(el: Any) -> None:
    """Keep the newest entry of a scrollable element in view."""
    el.client.run_javascript(
        f"const el = getHtmlElement({el.id}); if (el) el.scrollTop = el.scrollHeight;"
    )


def is_spreadsheet(filename: str | None, content_type: str | None = None) -> bool:
    if content_type and content_type in SPREADSHEET_CONTENT_TYPES:
        return True
    if not filename:
        return False
    return PurePath(filename).suffix.lower() in SPREADSHEET_EXTENSIONS


def _format_status_badge(status: str) -> tuple[str, str]:
    classes = _STATUS_BADGE_STYLES.get(status, _STATUS_BADGE_STYLES["queued"])
    return status.upper(), classes


def _format_record_counts(snapshot: TaskStatusSnapshot) -> str:
    return (
        f"Processed {snapshot.processed_records}/{snapshot.total_records}"
        f" · Successful {snapshot.successful_records}"
        f" · Errors {snapshot.error_records}"
    )


def _format_log_line(entry: LogEntry) -> str:
    icon = _LOG_ICONS.get(entry.severity, _LOG_ICONS[Severity.INFO])
    return f"{entry.timestamp.strftime('%H:%M:%S')} {icon} {entry.message}"


def _start_button_label(state: MonitorState) -> str:
    if state is MonitorState.SUBMITTING:
        return "Submitting..."
    if state is MonitorState.MONITORING:
        return "Processing..."
    return "Start job"


class NiceGUIScheduler:
    """Poll scheduler backed by ``ui.timer`` elements inside a fixed container."""

    def __init__(self, container: Any) -> None:
        self._container = container

    def every(self, interval: float, callback: PollCallback) -> Any:
        with self._container:
            return ui.timer(interval, callback, immediate=False)

    def once(self, delay: float, callback: PollCallback) -> Any:
        with self._container:
            return ui.timer(delay, callback, once=True)


def _build_monitor_panel(
    settings: UISettings,
    client: BatchAPIClient,
    prober: ConnectivityProber,
    register_connectivity_listener: Callable[[Callable[[ConnectionHealth], None]], None],
    test_context: Dict[str, Any] | None = None,
) -> TaskMonitor:
    selected_document: Optional[UploadFilePayload] = None
    scheduler = NiceGUIScheduler(ui.element("div"))
    monitor = TaskMonitor(
        client,
        scheduler,
        settings=settings.monitor_settings(),
        prober=prober,
    )
    rendered_entries: List[LogEntry] = []

    with ui.row().classes("w-full gap-6 flex-col lg:flex-row items-start"):
        with ui.card().classes("w-full lg:w-1/2"):
            ui.label("Control panel").classes("text-lg font-semibold")
            affiliation_select = ui.select(
                options={item.value: item.label for item in AffiliationType},
                value=AffiliationType.EXPRESS.value,
                label="Affiliation type",
            ).classes("w-full")
            submitter_input = ui.input(
                label="Submitter name",
                placeholder="Full name",
            ).classes("w-full mt-2")
            upload_control = ui.upload(
                label="Spreadsheet (.xlsx, .xls)",
                multiple=False,
                auto_upload=True,
            ).classes("w-full mt-2")
            upload_control.props["accept"] = ",".join(SPREADSHEET_EXTENSIONS)
            selected_file_label = ui.label("No file selected").classes(
                "text-sm text-gray-500 break-words"
            )
            error_label = ui.label("").classes("text-sm text-red-600 mt-2")
            _set_visibility_if_changed(error_label, False)
            with ui.row().classes("items-stretch gap-2 mt-3"):
                start_button = ui.button("Start job").props("color=primary")
                stop_button = ui.button("Stop").props("color=negative")
            _set_visibility_if_changed(stop_button, False)

            with ui.card().classes("w-full mt-4 bg-slate-50") as status_card:
                with ui.row().classes("items-center justify-between w-full"):
                    ui.label("Job status").classes("font-medium")
                    status_badge = ui.label("QUEUED")
                progress_bar = ui.linear_progress(value=0, show_value=False)
                counts_label = ui.label("").classes("text-sm text-gray-600")
                processing_label = ui.label("").classes("text-xs text-gray-500")
            _set_visibility_if_changed(status_card, False)
            download_link = ui.link("Download results", "#", new_tab=True).classes(
                "mt-3 font-medium text-emerald-700"
            )
            _set_visibility_if_changed(download_link, False)

        with ui.card().classes("w-full lg:w-1/2"):
            with ui.row().classes("items-center justify-between w-full"):
                ui.label("Live log").classes("text-lg font-semibold")
                log_count_label = ui.label("0").classes(
                    "text-xs px-2 py-1 rounded-full bg-slate-100"
                )
            log_empty_label = ui.label(
                "Log entries will appear here while the job runs..."
            ).classes("text-sm text-gray-400")
            log_column = ui.column().classes(
                "w-full gap-1 font-mono text-xs sm:text-sm max-h-[420px] overflow-y-auto"
            )

    def _render_timeline(entries: tuple[LogEntry, ...]) -> None:
        stale = len(entries) < len(rendered_entries) or (
            rendered_entries and entries and entries[0] is not rendered_entries[0]
        )
        if stale:
            log_column.clear()
            rendered_entries.clear()
        fresh = entries[len(rendered_entries) :]
        with log_column:
            for entry in fresh:
                ui.label(_format_log_line(entry)).classes(
                    f"break-words {_LOG_COLORS[entry.severity]}"
                )
                rendered_entries.append(entry)
        if fresh:
            _scroll_to_bottom(log_column)
        _set_text_if_changed(log_count_label, str(len(entries)))
        _set_visibility_if_changed(log_empty_label, not entries)

    def _render_snapshot(snapshot: TaskStatusSnapshot | None) -> None:
        _set_visibility_if_changed(status_card, snapshot is not None)
        if snapshot is None:
            return
        badge_text, badge_classes = _format_status_badge(snapshot.status)
        _set_text_if_changed(status_badge, badge_text)
        _set_classes_if_changed(
            status_badge,
            f"px-2 py-1 rounded-full text-xs font-medium {badge_classes}",
        )
        _set_visibility_if_changed(progress_bar, snapshot.progress is not None)
        if snapshot.progress is not None:
            progress_bar.set_value(snapshot.progress / 100)
        _set_text_if_changed(counts_label, _format_record_counts(snapshot))
        label = snapshot.processing_label
        _set_text_if_changed(processing_label, f"Processing: {label}" if label else "")
        _set_visibility_if_changed(processing_label, bool(label))

    def _render_view(view: TaskView) -> None:
        busy = view.is_busy
        _set_text_if_changed(start_button, _start_button_label(view.state))
        start_button.disabled = busy
        affiliation_select.disabled = busy
        submitter_input.disabled = busy
        _set_visibility_if_changed(stop_button, view.state is MonitorState.MONITORING)
        if view.error_message:
            _set_text_if_changed(error_label, view.error_message)
        _set_visibility_if_changed(error_label, bool(view.error_message))
        _render_snapshot(view.snapshot)
        if view.download_url:
            download_link.props["href"] = view.download_url
        _set_visibility_if_changed(download_link, bool(view.download_url))
        _render_timeline(view.timeline)

    async def _handle_file_selection(event: MultiUploadEventArguments) -> None:
        nonlocal selected_document
        for file in event.files:
            name = file.name
            content_type = getattr(file, "content_type", None)
            if not is_spreadsheet(name, content_type):
                ui.notify(
                    "Select a valid Excel file (.xlsx or .xls)", color="warning"
                )
                continue
            try:
                data = await file.read()
            except Exception as exc:  # noqa: BLE001
                ui.notify(f"Failed to read {name}: {exc}", color="negative")
                continue
            selected_document = UploadFilePayload(
                filename=name, data=data, content_type=content_type
            )
            _set_text_if_changed(selected_file_label, name)
        upload_control.reset()

    async def _submit() -> None:
        submission = JobSubmission(
            document=selected_document,
            affiliation_type=AffiliationType(
                affiliation_select.value or AffiliationType.EXPRESS.value
            ),
            submitter_name=submitter_input.value or "",
        )
        try:
            handle = await monitor.submit(submission)
        except ValidationError as exc:
            ui.notify(str(exc), color="warning")
        except SubmissionError as exc:
            ui.notify(f"Error starting job: {exc}", color="negative")
        else:
            ui.notify(f"Job {handle.task_id} started", color="positive")

    def _on_connectivity_change(health: ConnectionHealth) -> None:
        _render_view(monitor.current_view())

    monitor.add_listener(_render_view)
    upload_control.on_multi_upload(_handle_file_selection)
    start_button.on("click", lambda _: _schedule_async(_submit))
    stop_button.on("click", lambda _: monitor.cancel())
    register_connectivity_listener(_on_connectivity_change)
    ui.context.client.on_delete(monitor.shutdown)

    if test_context is not None:
        panel_hooks = test_context.setdefault("monitor_panel", {})
        panel_hooks["monitor"] = monitor
        panel_hooks["scheduler"] = scheduler
        panel_hooks["log_column"] = log_column
        panel_hooks["render_view"] = _render_view
        panel_hooks["log_count_label"] = log_count_label
        panel_hooks["error_label"] = error_label
        panel_hooks["submit"] = _submit

    _render_view(monitor.current_view())
    return monitor


def create_ui_app(
    settings: UISettings | None = None,
    test_context: Dict[str, Any] | None = None,
) -> None:
    settings = settings or UISettings.load()
    client = BatchAPIClient(
        settings.api_base_url, timeout_seconds=settings.api_timeout_seconds
    )
    prober = ConnectivityProber(client)
    connectivity_listeners: List[Callable[[ConnectionHealth], None]] = []

    def register_connectivity_listener(
        listener: Callable[[ConnectionHealth], None],
    ) -> None:
        connectivity_listeners.append(listener)
        listener(prober.health)

    with ui.header().classes("justify-between px-6"):
        ui.label("Batch Monitor").classes("text-lg font-semibold")
        with ui.row().classes("items-center gap-3"):
            status_icon = ui.icon("cloud").classes("text-xl text-gray-400")
            status_label = ui.label("Checking server...").classes(
                "font-medium text-gray-500"
            )

    async def check_connectivity() -> None:
        result = await prober.probe()
        for listener in connectivity_listeners:
            listener(result.health)
        text, color = _CONNECTION_LABELS[result.health]
        if result.detail:
            text = f"{text} ({result.detail})"
        _set_text_if_changed(status_label, text)
        _set_classes_if_changed(status_icon, f"text-xl {color}")
        _set_classes_if_changed(status_label, f"font-medium {color}")

    with ui.column().classes("w-full max-w-6xl mx-auto p-4"):
        ui.label("Spreadsheet batch processing").classes("text-2xl font-bold")
        ui.label(f"API base: {settings.api_base_url}").classes(
            "text-sm text-gray-500"
        )
        _build_monitor_panel(
            settings, client, prober, register_connectivity_listener, test_context
        )

    if test_context is not None:
        test_context["check_connectivity"] = check_connectivity
        test_context["status_label"] = status_label

    _schedule_async(check_connectivity)
