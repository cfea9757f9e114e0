"""Log service client: completed-log blobs and live SSE tails."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from datetime import datetime

import httpx
import structlog
import typer

from iacctl.clients.base import build_http_client
from iacctl.contracts import LogClientError
from iacctl.core.cancel import CancelToken
from iacctl.core.config import IacctlSettings

STREAM_ENDPOINT = "/gateway/log-service/stream"
BLOB_ENDPOINT = "/gateway/log-service/blob"
TOKEN_HEADER = "X-Harness-Token"

# Colour prefix some steps leak into their output
_ANSI_YELLOW_PREFIX = "\u001b[33;"

logger = structlog.get_logger()


def format_log_line(raw: str) -> str:
    """Render one JSON log record as "LEVEL dd/mm/YYYY HH:MM:SS out".

    Raises:
        LogClientError: If the record is not a JSON object
    """
    try:
        record = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LogClientError(f"invalid log line: {e}") from e
    if not isinstance(record, dict):
        raise LogClientError(f"invalid log line: expected object, got {type(record).__name__}")

    raw_time = str(record.get("time") or "")
    try:
        timestamp = datetime.fromisoformat(raw_time.replace("Z", "+00:00"))
        rendered_time = timestamp.strftime("%d/%m/%Y %H:%M:%S")
    except ValueError:
        logger.debug("Unparseable log timestamp", time=raw_time)
        rendered_time = raw_time

    out = str(record.get("out") or "").replace(_ANSI_YELLOW_PREFIX, "")
    level = str(record.get("level") or "").upper()
    return f"{level} {rendered_time} {out.strip()}"


class LogClient:
    """Reads step logs from the log service.

    The log token is issued once per run by the job client and must be set
    with set_token() before any blob or tail call.

    Args:
        client: httpx client rooted at the log service
        account_id: Account the logs belong to
        echo: Sink for formatted lines (typer.echo by default)
    """

    def __init__(
        self,
        client: httpx.Client,
        account_id: str,
        *,
        echo: Callable[[str], None] = typer.echo,
    ) -> None:
        self._client = client
        self._account_id = account_id
        self._echo = echo
        self._token = ""

    @classmethod
    def from_settings(
        cls,
        settings: IacctlSettings,
        *,
        echo: Callable[[str], None] = typer.echo,
        transport: httpx.BaseTransport | None = None,
    ) -> LogClient:
        client = build_http_client(
            settings.effective_log_service_url, http=settings.http, transport=transport
        )
        return cls(client, settings.account_id, echo=echo)

    def set_token(self, token: str) -> None:
        self._token = token

    def close(self) -> None:
        self._client.close()

    def _params(self, key: str) -> dict[str, str]:
        return {"accountID": self._account_id, "key": key}

    def _headers(self) -> dict[str, str]:
        return {TOKEN_HEADER: self._token}

    def blob(self, key: str) -> int:
        """Print every line of a completed log.

        Returns:
            Number of lines printed; zero means the log has no content yet

        Raises:
            LogClientError: On transport failure, a non-200 response, or an
                unreadable line
        """
        try:
            response = self._client.get(BLOB_ENDPOINT, params=self._params(key), headers=self._headers())
        except httpx.HTTPError as e:
            raise LogClientError(f"log blob {key}: {e}") from e

        if response.status_code != 200:
            try:
                message = response.json().get("message", "")
            except (ValueError, AttributeError) as e:
                raise LogClientError(
                    f"log blob {key}: HTTP {response.status_code}",
                    status_code=response.status_code,
                ) from e
            raise LogClientError(
                message or f"HTTP {response.status_code}", status_code=response.status_code
            )

        count = 0
        for raw in response.text.splitlines():
            count += 1
            self._echo(format_log_line(raw))
        return count

    def tail(self, key: str, cancel: CancelToken | None = None) -> None:
        """Print lines from the live stream until it ends or `cancel` fires.

        Raises:
            LogClientError: On transport failure or a non-2xx response
        """
        # Live streams can stay quiet for longer than any request timeout
        timeout = httpx.Timeout(self._client.timeout.connect, read=None)
        try:
            with self._client.stream(
                "GET",
                STREAM_ENDPOINT,
                params=self._params(key),
                headers={**self._headers(), "Accept": "text/event-stream"},
                timeout=timeout,
            ) as response:
                if response.is_error:
                    response.read()
                    raise LogClientError(
                        f"log stream {key}: HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                for data in _iter_sse_data(response):
                    if cancel is not None and cancel.cancelled:
                        return
                    try:
                        self._echo(format_log_line(data))
                    except LogClientError as e:
                        self._echo(str(e))
        except httpx.HTTPError as e:
            raise LogClientError(f"log stream {key}: {e}") from e


def _iter_sse_data(response: httpx.Response) -> Iterator[str]:
    """Yield the data payload of each server-sent event."""
    buffer: list[str] = []
    for line in response.iter_lines():
        if not line:
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            buffer.append(line[5:].lstrip())
    if buffer:
        yield "\n".join(buffer)
