"""Adapter manager for registry discovery and lookup.

Uses pluggy for hook-based adapter registration.
"""

from typing import Any

import httpx
import pluggy

from iacctl.clients.registry.hookspecs import PROJECT_NAME, IacctlRegistrySpec
from iacctl.clients.registry.protocols import DestinationRegistry, SourceRegistry
from iacctl.contracts import RegistryError, RegistryType
from iacctl.core.config import IacctlSettings, RegistryEndpointConfig


class RegistryAdapterManager:
    """Manages registry adapter registration and lookup.

    Usage:
        manager = RegistryAdapterManager()
        manager.register_builtin_adapters()

        source = manager.create_source(config.source, settings)
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(IacctlRegistrySpec)

        self._sources: dict[RegistryType, type[SourceRegistry]] = {}
        self._destinations: dict[RegistryType, type[DestinationRegistry]] = {}

    def register_builtin_adapters(self) -> None:
        """Register the built-in adapters. Call once at startup."""
        from iacctl.clients.registry.hookimpl import builtin_registries

        self.register(builtin_registries)

    def register(self, plugin: Any) -> None:
        """Register an object implementing the registry hooks."""
        self._pm.register(plugin)
        self._refresh_caches()

    def _refresh_caches(self) -> None:
        """Rebuild lookup tables from hooks.

        Raises:
            ValueError: If two adapters claim the same registry type and role
        """
        new_sources: dict[RegistryType, type[SourceRegistry]] = {}
        new_destinations: dict[RegistryType, type[DestinationRegistry]] = {}

        for sources in self._pm.hook.iacctl_get_source_registries():
            for cls in sources:
                kind = cls.registry_type
                if kind in new_sources:
                    raise ValueError(
                        f"Duplicate source adapter for {kind.value}. "
                        f"Already registered by {new_sources[kind].__name__}"
                    )
                new_sources[kind] = cls

        for destinations in self._pm.hook.iacctl_get_destination_registries():
            for cls in destinations:
                kind = cls.registry_type
                if kind in new_destinations:
                    raise ValueError(
                        f"Duplicate destination adapter for {kind.value}. "
                        f"Already registered by {new_destinations[kind].__name__}"
                    )
                new_destinations[kind] = cls

        self._sources = new_sources
        self._destinations = new_destinations

    def get_source_adapter(self, kind: RegistryType) -> type[SourceRegistry]:
        try:
            return self._sources[kind]
        except KeyError:
            raise RegistryError(f"unsupported registry type: {kind.value}") from None

    def get_destination_adapter(self, kind: RegistryType) -> type[DestinationRegistry]:
        try:
            return self._destinations[kind]
        except KeyError:
            raise RegistryError(f"unsupported registry type: {kind.value}") from None

    def create_source(
        self,
        config: RegistryEndpointConfig,
        settings: IacctlSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> SourceRegistry:
        return self.get_source_adapter(config.type).from_config(
            config, settings, transport=transport
        )

    def create_destination(
        self,
        config: RegistryEndpointConfig,
        settings: IacctlSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> DestinationRegistry:
        return self.get_destination_adapter(config.type).from_config(
            config, settings, transport=transport
        )
