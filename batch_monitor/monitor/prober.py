"""One-shot liveness probe that gates job submission."""

from __future__ import annotations

import logging
from typing import Optional

from batch_monitor.client import BatchAPIClient
from batch_monitor.monitor.models import ConnectionHealth, HealthResult

logger = logging.getLogger(__name__)


class ConnectivityProber:
    """Resolves connection health once per application lifetime."""

    def __init__(self, client: BatchAPIClient) -> None:
        self._client = client
        self._result: Optional[HealthResult] = None

    @property
    def health(self) -> ConnectionHealth:
        if self._result is None:
            return ConnectionHealth.CHECKING
        return self._result.health

    @property
    def is_connected(self) -> bool:
        return self.health is ConnectionHealth.CONNECTED

    @property
    def result(self) -> Optional[HealthResult]:
        return self._result

    async def probe(self) -> HealthResult:
        if self._result is not None:
            return self._result
        report = await self._client.ping()
        if report.reachable:
            result = HealthResult(health=ConnectionHealth.CONNECTED)
            logger.info("Processing service reachable at %s", self._client.base_url)
        else:
            result = HealthResult(health=ConnectionHealth.ERROR, detail=report.detail)
            logger.warning(
                "Processing service unreachable at %s: %s",
                self._client.base_url,
                report.detail,
            )
        self._result = result
        return result
