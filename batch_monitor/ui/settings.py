"""Configuration helpers for the NiceGUI UI service."""

from __future__ import annotations

import os
from dataclasses import dataclass

from batch_monitor.monitor.task_monitor import MonitorSettings

DEFAULT_API_BASE_URL = "http://127.0.0.1:8000"
DEFAULT_UI_BIND_HOST = "0.0.0.0"
DEFAULT_UI_BIND_PORT = 8080
DEFAULT_API_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_FIRST_POLL_DELAY_SECONDS = 3.0
DEFAULT_MAX_CONSECUTIVE_ERRORS = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


@dataclass(frozen=True)
class UISettings:
    api_base_url: str
    ui_bind_host: str
    ui_bind_port: int
    api_timeout_seconds: float
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    first_poll_delay_seconds: float = DEFAULT_FIRST_POLL_DELAY_SECONDS
    require_connectivity_check: bool = True
    max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS

    @classmethod
    def load(cls) -> UISettings:
        base_url = os.environ.get("BM_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/")
        if not base_url:
            base_url = DEFAULT_API_BASE_URL
        return cls(
            api_base_url=base_url,
            ui_bind_host=os.environ.get("BM_UI_BIND_HOST", DEFAULT_UI_BIND_HOST),
            ui_bind_port=_parse_int_env("BM_UI_BIND_PORT", DEFAULT_UI_BIND_PORT),
            api_timeout_seconds=_parse_float_env(
                "BM_UI_API_TIMEOUT_SECONDS", DEFAULT_API_TIMEOUT_SECONDS
            ),
            poll_interval_seconds=_parse_float_env(
                "BM_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
            ),
            first_poll_delay_seconds=_parse_float_env(
                "BM_FIRST_POLL_DELAY_SECONDS", DEFAULT_FIRST_POLL_DELAY_SECONDS
            ),
            require_connectivity_check=_parse_bool_env(
                "BM_REQUIRE_CONNECTIVITY_CHECK", True
            ),
            max_consecutive_errors=max(
                1,
                _parse_int_env(
                    "BM_MAX_CONSECUTIVE_ERRORS", DEFAULT_MAX_CONSECUTIVE_ERRORS
                ),
            ),
        )

    def monitor_settings(self) -> MonitorSettings:
        return MonitorSettings(
            poll_interval_seconds=self.poll_interval_seconds,
            first_poll_delay_seconds=self.first_poll_delay_seconds,
            require_connectivity_check=self.require_connectivity_check,
            max_consecutive_errors=self.max_consecutive_errors,
        )
