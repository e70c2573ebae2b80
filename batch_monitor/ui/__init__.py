"""Public API for the NiceGUI UI service."""

from __future__ import annotations

from batch_monitor.ui.app import create_ui_app
from batch_monitor.ui.settings import UISettings

__all__ = ["create_ui_app", "UISettings"]
