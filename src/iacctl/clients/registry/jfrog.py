"""JFrog Artifactory source adapter (generic repositories)."""

from __future__ import annotations

import posixpath

import httpx
import structlog

from iacctl.clients.base import build_http_client, error_message
from iacctl.contracts import Artifact, RegistryError, RegistryType
from iacctl.core.config import IacctlSettings, RegistryEndpointConfig

# Files at the repository root have no version folder
DEFAULT_VERSION = "default"

logger = structlog.get_logger()


def _auth(config: RegistryEndpointConfig) -> httpx.Auth | None:
    creds = config.credentials
    if creds.username and creds.password:
        return httpx.BasicAuth(creds.username, creds.password)
    return None


class JFrogSource:
    """Lists and downloads files from an Artifactory repository.

    Every file becomes one artifact: the file name is the artifact name and
    the folder it sits in is the version.
    """

    registry_type = RegistryType.JFROG

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    @classmethod
    def from_config(
        cls,
        config: RegistryEndpointConfig,
        settings: IacctlSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> JFrogSource:
        headers = {}
        if config.credentials.token:
            headers["Authorization"] = f"Bearer {config.credentials.token}"
        client = build_http_client(
            config.endpoint.rstrip("/"),
            headers=headers,
            http=settings.http,
            transport=transport,
        )
        auth = _auth(config)
        if auth is not None:
            client.auth = auth
        return cls(client)

    def close(self) -> None:
        self._client.close()

    def _get(self, url: str) -> httpx.Response:
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            raise RegistryError(f"GET {url}: {e}") from e
        if response.is_error:
            raise RegistryError(error_message(response), status_code=response.status_code)
        return response

    def list_artifacts(self, registry: str) -> list[Artifact]:
        response = self._get(f"/artifactory/api/storage/{registry}?list&deep=1")
        try:
            files = response.json().get("files") or []
        except (ValueError, AttributeError) as e:
            raise RegistryError(f"unexpected file list for registry {registry!r}") from e

        artifacts = []
        for entry in files:
            if entry.get("folder"):
                continue
            uri = str(entry.get("uri", "")).strip("/")
            if not uri:
                continue
            folder, name = posixpath.split(uri)
            artifacts.append(
                Artifact(
                    name=name,
                    version=folder or DEFAULT_VERSION,
                    type="GENERIC",
                    registry=registry,
                    size=int(entry.get("size") or 0),
                    properties={
                        "path": uri,
                        "sha1": str(entry.get("sha1", "")),
                        "sha256": str(entry.get("sha2", "")),
                    },
                )
            )
        logger.debug("Listed source artifacts", registry=registry, count=len(artifacts))
        return artifacts

    def download_artifact(self, artifact: Artifact) -> bytes:
        path = artifact.properties.get("path") or artifact.name
        return self._get(f"/artifactory/{artifact.registry}/{path}").content
