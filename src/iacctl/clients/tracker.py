"""Migration tracker client.

The tracker records per-artifact progress of a registry migration and owns
destination registry creation.
"""

from __future__ import annotations

import httpx
from pydantic import ValidationError

from iacctl.clients.base import HTTPServiceClient, build_http_client
from iacctl.contracts import ArtifactUpdate, MigrationStatus, TrackerError
from iacctl.core.config import IacctlSettings

API_PREFIX = "/gateway/har/api/v1"
API_KEY_HEADER = "x-api-key"


def space_ref(account: str, scoped_name: str) -> tuple[str, str]:
    """Split a scoped registry name into (space reference, registry identifier).

    "registry" lives at account level, "org/registry" in an organisation
    and "org/project/registry" in a project.

    Raises:
        TrackerError: If the name has more than three segments or an empty one
    """
    parts = scoped_name.strip("/").split("/")
    if len(parts) > 3 or any(not p for p in parts):
        raise TrackerError(f"invalid registry path: {scoped_name!r}")
    return "/".join([account, *parts[:-1]]), parts[-1]


class MigrationTracker(HTTPServiceClient):
    """Client for the migration tracking API."""

    error_class = TrackerError

    def __init__(self, client: httpx.Client, account_id: str) -> None:
        super().__init__(client)
        self._account_id = account_id

    @classmethod
    def from_settings(
        cls,
        settings: IacctlSettings,
        *,
        api_key: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> MigrationTracker:
        client = build_http_client(
            settings.effective_registry_url + API_PREFIX,
            headers={API_KEY_HEADER: api_key if api_key is not None else settings.api_key},
            http=settings.http,
            transport=transport,
        )
        return cls(client, settings.account_id)

    def start_migration(self, registry_id: str, total: int, account_id: str | None = None) -> str:
        """Open a tracked migration and return its id."""
        payload = self._json(
            "POST",
            "/clients/v1/migration/start",
            json={
                "registryID": registry_id,
                "accountIdentifier": account_id or self._account_id,
                "totalImages": total,
            },
        )
        migration_id = payload.get("id") if isinstance(payload, dict) else None
        if not migration_id:
            raise TrackerError("migration start response carried no id")
        return str(migration_id)

    def update_artifact_status(self, migration_id: str, update: ArtifactUpdate) -> None:
        self._request(
            "PUT",
            f"/clients/v1/migration/{migration_id}/update",
            json=update.to_payload(),
        )

    def get_migration_status(self, migration_id: str) -> MigrationStatus:
        payload = self._json("GET", f"/clients/v1/migration/{migration_id}/status")
        try:
            return MigrationStatus.model_validate(payload)
        except ValidationError as e:
            raise TrackerError(f"unexpected migration status response: {e}") from e

    def create_registry(self, scoped_name: str, package_type: str) -> None:
        """Create the destination registry; an existing one is left as is."""
        ref, identifier = space_ref(self._account_id, scoped_name)
        try:
            self._request(
                "POST",
                "/registry",
                params={"space_ref": ref},
                json={"identifier": identifier, "packageType": package_type},
            )
        except TrackerError as e:
            if e.status_code != 409:
                raise
