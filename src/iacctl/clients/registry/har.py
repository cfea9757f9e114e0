"""Artifact registry destination adapter (generic packages)."""

from __future__ import annotations

import httpx

from iacctl.clients.base import build_http_client, error_message
from iacctl.contracts import Artifact, RegistryError, RegistryType
from iacctl.core.config import IacctlSettings, RegistryEndpointConfig

API_KEY_HEADER = "x-api-key"
UPLOAD_DESCRIPTION = "Uploaded via harness-cli migration tool"


class HARDestination:
    """Uploads artifacts as generic packages.

    Args:
        client: httpx client rooted at the package upload URL
        account_id: Account the destination registries belong to
    """

    registry_type = RegistryType.HAR

    def __init__(self, client: httpx.Client, account_id: str) -> None:
        self._client = client
        self._account_id = account_id

    @classmethod
    def from_config(
        cls,
        config: RegistryEndpointConfig,
        settings: IacctlSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> HARDestination:
        creds = config.credentials
        client = build_http_client(
            settings.pkg_url or config.endpoint.rstrip("/"),
            headers={API_KEY_HEADER: creds.token or creds.password},
            http=settings.http,
            transport=transport,
        )
        return cls(client, settings.account_id)

    def close(self) -> None:
        self._client.close()

    def _package_url(self, artifact: Artifact) -> str:
        registry = artifact.registry.rsplit("/", 1)[-1]
        version = artifact.version.replace("/", "_")
        return f"/generic/{self._account_id}/{registry}/{artifact.name}/{version}"

    def artifact_exists(self, artifact: Artifact) -> bool:
        """Whether the generic package version already holds this file."""
        url = self._package_url(artifact)
        try:
            response = self._client.head(url, params={"filename": artifact.name})
        except httpx.HTTPError as e:
            raise RegistryError(f"HEAD {url}: {e}") from e
        if response.status_code == 404:
            return False
        if response.is_error:
            raise RegistryError(error_message(response), status_code=response.status_code)
        return True

    def upload_artifact(self, artifact: Artifact, data: bytes) -> None:
        url = self._package_url(artifact)
        try:
            response = self._client.put(
                url,
                files={"file": (artifact.name, data, "application/octet-stream")},
                data={"filename": artifact.name, "description": UPLOAD_DESCRIPTION},
            )
        except httpx.HTTPError as e:
            raise RegistryError(
                f"failed to upload file '{artifact.name}/{artifact.version}': {e}"
            ) from e
        if response.is_error:
            raise RegistryError(
                f"failed to upload file '{artifact.name}/{artifact.version}', "
                f"status code: {response.status_code}, response: {error_message(response)}",
                status_code=response.status_code,
            )
