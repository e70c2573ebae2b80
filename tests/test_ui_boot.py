"""Smoke test that ensures the NiceGUI UI entrypoint boots without errors."""

from datetime import datetime

from nicegui import Client, app

from batch_monitor.monitor.models import (
    ConnectionHealth,
    LogEntry,
    MonitorState,
    Severity,
    TaskView,
)
from batch_monitor.ui import UISettings, create_ui_app
from batch_monitor.ui.app import (
    _set_classes_if_changed,
    _set_text_if_changed,
    _set_visibility_if_changed,
)


def _settings() -> UISettings:
    return UISettings(
        api_base_url="http://127.0.0.1:8000",
        ui_bind_host="0.0.0.0",
        ui_bind_port=8080,
        api_timeout_seconds=0.1,
    )


def test_ui_constructs_monitor_panel() -> None:
    """Creating the app should register NiceGUI routes and an idle monitor."""

    initial_routes = list(app.router.routes)
    test_context: dict = {}

    try:
        create_ui_app(_settings(), test_context=test_context)
        new_paths = {route.path for route in app.router.routes}
        original_paths = {route.path for route in initial_routes}
        added_paths = new_paths - original_paths
        assert added_paths, "UI creation should add NiceGUI routes"
        monitor = test_context["monitor_panel"]["monitor"]
        assert monitor.state.value == "idle"
        assert not monitor.has_active_timer
        assert monitor.settings.poll_interval_seconds == 5.0
    finally:
        app.router.routes[:] = initial_routes


class DummyElement:
    def __init__(self) -> None:
        self.text_calls = 0
        self.classes_calls = 0
        self.visibility_calls = 0

    def set_text(self, _) -> None:
        self.text_calls += 1

    def classes(self, *_, **__) -> "DummyElement":
        self.classes_calls += 1
        return self

    def set_visibility(self, _) -> None:
        self.visibility_calls += 1


def test_set_text_if_changed_gates_updates() -> None:
    dummy = DummyElement()
    _set_text_if_changed(dummy, "alpha")
    _set_text_if_changed(dummy, "alpha")
    assert dummy.text_calls == 1
    _set_text_if_changed(dummy, "beta")
    assert dummy.text_calls == 2


def test_set_classes_if_changed_gates_updates() -> None:
    dummy = DummyElement()
    _set_classes_if_changed(dummy, "foo")
    _set_classes_if_changed(dummy, "foo")
    assert dummy.classes_calls == 1
    _set_classes_if_changed(dummy, "bar")
    assert dummy.classes_calls == 2


def test_set_visibility_if_changed_gates_updates() -> None:
    dummy = DummyElement()
    _set_visibility_if_changed(dummy, True)
    _set_visibility_if_changed(dummy, True)
    assert dummy.visibility_calls == 1
    _set_visibility_if_changed(dummy, False)
    assert dummy.visibility_calls == 2


def test_scheduler_interval_timer_waits_a_full_interval() -> None:
    initial_routes = list(app.router.routes)
    test_context: dict = {}

    try:
        create_ui_app(_settings(), test_context=test_context)
        scheduler = test_context["monitor_panel"]["scheduler"]

        async def _noop() -> None:
            return None

        interval_timer = scheduler.every(5.0, _noop)
        first_timer = scheduler.once(3.0, _noop)
        try:
            assert interval_timer.interval == 5.0
            assert vars(interval_timer)["_immediate"] is False
            assert first_timer.interval == 3.0
        finally:
            interval_timer.cancel()
            first_timer.cancel()
    finally:
        app.router.routes[:] = initial_routes


def test_monitor_shuts_down_on_client_delete_not_disconnect(monkeypatch) -> None:
    initial_routes = list(app.router.routes)
    test_context: dict = {}
    disconnect_handlers: list = []
    delete_handlers: list = []
    monkeypatch.setattr(
        Client,
        "on_disconnect",
        lambda self, handler: disconnect_handlers.append(handler),
    )
    monkeypatch.setattr(
        Client, "on_delete", lambda self, handler: delete_handlers.append(handler)
    )

    try:
        create_ui_app(_settings(), test_context=test_context)
        monitor = test_context["monitor_panel"]["monitor"]
        assert monitor.shutdown in delete_handlers
        assert monitor.shutdown not in disconnect_handlers
    finally:
        app.router.routes[:] = initial_routes


def test_new_log_entries_scroll_the_log_column(monkeypatch) -> None:
    initial_routes = list(app.router.routes)
    test_context: dict = {}
    scripts: list = []
    monkeypatch.setattr(
        Client,
        "run_javascript",
        lambda self, code, **kwargs: scripts.append(code),
    )

    try:
        create_ui_app(_settings(), test_context=test_context)
        hooks = test_context["monitor_panel"]
        log_column = hooks["log_column"]
        entry = LogEntry(
            id=1,
            timestamp=datetime(2024, 1, 1, 10, 0, 0),
            message="Iniciando",
            severity=Severity.INFO,
        )
        view = TaskView(
            state=MonitorState.MONITORING,
            connection=ConnectionHealth.CONNECTED,
            task_id="t1",
            timeline=(entry,),
        )
        hooks["render_view"](view)
        assert len(scripts) == 1
        assert f"getHtmlElement({log_column.id})" in scripts[0]
        assert "scrollHeight" in scripts[0]

        hooks["render_view"](view)
        assert len(scripts) == 1
    finally:
        app.router.routes[:] = initial_routes


def test_set_text_if_changed_tracks_each_element_separately() -> None:
    first = DummyElement()
    second = DummyElement()
    _set_text_if_changed(first, "alpha")
    _set_text_if_changed(second, "alpha")
    assert first.text_calls == 1
    assert second.text_calls == 1
    assert first._bm_last_text == "alpha"
