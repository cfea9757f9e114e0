"""Shared httpx plumbing for the remote service clients."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from iacctl.contracts import RemoteCallError
from iacctl.core.config import HTTPSettings


def build_http_client(
    base_url: str,
    *,
    headers: Mapping[str, str] | None = None,
    http: HTTPSettings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create an httpx.Client with the configured timeout and connection retries.

    Args:
        base_url: Service root, requests use paths relative to it
        headers: Headers sent with every request
        http: Transport settings (defaults apply when None)
        transport: Override transport, e.g. httpx.MockTransport in tests
    """
    http = http or HTTPSettings()
    if transport is None:
        transport = httpx.HTTPTransport(retries=http.retries)
    return httpx.Client(
        base_url=base_url,
        headers=dict(headers or {}),
        timeout=http.timeout_seconds,
        transport=transport,
    )


def error_message(response: httpx.Response) -> str:
    """Best human-readable message from an error response body."""
    try:
        payload: Any = response.json()
    except ValueError:
        text = response.text.strip()
        return text or f"HTTP {response.status_code}"

    if isinstance(payload, dict):
        status = payload.get("status")
        if isinstance(status, dict) and status.get("message"):
            return str(status["message"])
        for key in ("message", "detail", "error"):
            if payload.get(key):
                return str(payload[key])
    return f"HTTP {response.status_code}"


class HTTPServiceClient:
    """Base for clients that raise a typed RemoteCallError on failure.

    Subclasses set `error_class` and call `_request`, which converts both
    transport errors and non-2xx responses.
    """

    error_class: type[RemoteCallError] = RemoteCallError

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HTTPServiceClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise self.error_class(f"{method} {url}: {e}") from e
        if response.is_error:
            raise self.error_class(error_message(response), status_code=response.status_code)
        return response

    def _json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise self.error_class(f"invalid JSON from {method} {url}") from e
