#!/usr/bin/env python3
"""Entrypoint for the NiceGUI-based Batch Monitor UI service."""

from __future__ import annotations

import logging
import os

from nicegui import ui

from batch_monitor.ui import UISettings, create_ui_app


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("BM_LOG_LEVEL", "INFO").upper(),
        format="[batch_monitor] %(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = UISettings.load()
    create_ui_app(settings)
    ui.run(
        host=settings.ui_bind_host,
        port=settings.ui_bind_port,
        title="Batch Monitor",
        reload=False,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
