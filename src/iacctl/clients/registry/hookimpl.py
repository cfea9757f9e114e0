"""Hook implementation for built-in registry adapters."""

from typing import Any

from iacctl.clients.registry.hookspecs import hookimpl


class IacctlBuiltinRegistries:
    """Hook implementer for built-in registry adapters."""

    @hookimpl
    def iacctl_get_source_registries(self) -> list[type[Any]]:
        from iacctl.clients.registry.jfrog import JFrogSource

        return [JFrogSource]

    @hookimpl
    def iacctl_get_destination_registries(self) -> list[type[Any]]:
        from iacctl.clients.registry.har import HARDestination

        return [HARDestination]


# Singleton instance for registration
builtin_registries = IacctlBuiltinRegistries()
