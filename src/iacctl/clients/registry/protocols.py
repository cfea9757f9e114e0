"""Registry adapter protocols.

These protocols define what source and destination adapters must implement.
They're used for type checking; discovery and lookup are pluggy's job.

Adapter Types:
- Source: Lists and downloads artifacts (one per migration)
- Destination: Receives uploaded artifacts (one per migration)
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from iacctl.contracts import Artifact, RegistryType

if TYPE_CHECKING:
    from iacctl.core.config import IacctlSettings, RegistryEndpointConfig


@runtime_checkable
class SourceRegistry(Protocol):
    """Protocol for source registry adapters.

    Example:
        class JFrogSource:
            registry_type = RegistryType.JFROG

            def list_artifacts(self, registry: str) -> list[Artifact]:
                ...
    """

    registry_type: RegistryType

    @classmethod
    def from_config(
        cls,
        config: "RegistryEndpointConfig",
        settings: "IacctlSettings",
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> "SourceRegistry":
        """Build the adapter from a migration plan endpoint."""
        ...

    def list_artifacts(self, registry: str) -> list[Artifact]:
        """List every artifact in a registry.

        Raises:
            RegistryError: If the registry cannot be listed
        """
        ...

    def download_artifact(self, artifact: Artifact) -> bytes:
        """Fetch an artifact's content.

        Raises:
            RegistryError: If the download fails
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class DestinationRegistry(Protocol):
    """Protocol for destination registry adapters."""

    registry_type: RegistryType

    @classmethod
    def from_config(
        cls,
        config: "RegistryEndpointConfig",
        settings: "IacctlSettings",
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> "DestinationRegistry": ...

    def upload_artifact(self, artifact: Artifact, data: bytes) -> None:
        """Store `data` as `artifact` in `artifact.registry`.

        Raises:
            RegistryError: If the upload fails
        """
        ...

    def close(self) -> None: ...
