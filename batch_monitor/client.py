"""Async API client for the batch processing service."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict
from urllib.parse import urlparse

import httpx

DEFAULT_SPREADSHEET_CONTENT_TYPE = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
)


@dataclass(frozen=True)
class HealthReport:
    reachable: bool
    detail: str | None = None


@dataclass(frozen=True)
class UploadFilePayload:
    filename: str
    data: bytes
    content_type: str | None = None


class APIRequestError(Exception):
    """Non-success HTTP response from the processing service."""

    def __init__(self, status_code: int, detail: str | None = None) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail or f"status={status_code}")


def _detail_from_response(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    for key in ("detail", "message"):
        value = payload.get(key)
        if value:
            return str(value)
    return None


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise APIRequestError(response.status_code, _detail_from_response(response))


def result_basename(result_file_url: str) -> str:
    path = urlparse(result_file_url).path or result_file_url
    return PurePosixPath(path.rstrip("/")).name


class BatchAPIClient:
    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        trimmed = base_url.rstrip("/")
        if not trimmed:
            raise ValueError("API base URL must not be empty")
        self.base_url = trimmed
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _httpx_client(self, timeout: httpx.Timeout) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {"timeout": timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def ping(self) -> HealthReport:
        timeout = httpx.Timeout(self.timeout_seconds)
        try:
            async with self._httpx_client(timeout) as client:
                response = await client.get(f"{self.base_url}/health")
                response.raise_for_status()
                return HealthReport(reachable=True)
        except httpx.HTTPStatusError as exc:
            return HealthReport(
                reachable=False,
                detail=f"status={exc.response.status_code}",
            )
        except httpx.TimeoutException as exc:
            return HealthReport(reachable=False, detail=f"timeout: {exc}")
        except httpx.HTTPError as exc:
            return HealthReport(reachable=False, detail=str(exc) or type(exc).__name__)

    async def submit_job(
        self,
        document: UploadFilePayload,
        affiliation_type: str,
        submitter_name: str,
    ) -> Dict[str, Any]:
        timeout = httpx.Timeout(self.timeout_seconds)
        content_type = document.content_type or DEFAULT_SPREADSHEET_CONTENT_TYPE
        async with self._httpx_client(timeout) as client:
            response = await client.post(
                f"{self.base_url}/procesar",
                data={
                    "tipo_afiliacion": affiliation_type,
                    "nombre_afiliador": submitter_name,
                },
                files={
                    "archivo_excel": (document.filename, document.data, content_type),
                },
            )
            _raise_for_status(response)
            payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("invalid submit job payload")
        return payload

    async def get_task_status(self, task_id: str) -> Dict[str, Any]:
        timeout = httpx.Timeout(self.timeout_seconds)
        async with self._httpx_client(timeout) as client:
            response = await client.get(f"{self.base_url}/status/{task_id}")
            _raise_for_status(response)
            payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("invalid task status payload")
        return payload

    def download_url(self, result_file_url: str) -> str:
        return f"{self.base_url}/download/{result_basename(result_file_url)}"
