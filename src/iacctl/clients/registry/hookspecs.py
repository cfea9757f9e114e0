"""pluggy hook specifications for registry adapters.

Adapters implement these hooks to register themselves with the migration
engine. The adapter manager calls these hooks during discovery.

Usage (implementing an adapter):
    from iacctl.clients.registry.hookspecs import hookimpl

    class MyAdapters:
        @hookimpl
        def iacctl_get_source_registries(self):
            return [MySource]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from iacctl.clients.registry.protocols import DestinationRegistry, SourceRegistry

PROJECT_NAME = "iacctl"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class IacctlRegistrySpec:
    """Hook specifications for registry adapters."""

    @hookspec
    def iacctl_get_source_registries(self) -> list[type["SourceRegistry"]]:  # type: ignore[empty-body]
        """Return source adapter classes (not instances)."""

    @hookspec
    def iacctl_get_destination_registries(self) -> list[type["DestinationRegistry"]]:  # type: ignore[empty-body]
        """Return destination adapter classes (not instances)."""
