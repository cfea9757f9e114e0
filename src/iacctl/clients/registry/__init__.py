"""Registry adapters used by the migration engine."""

from iacctl.clients.registry.har import HARDestination
from iacctl.clients.registry.hookspecs import hookimpl
from iacctl.clients.registry.jfrog import JFrogSource
from iacctl.clients.registry.manager import RegistryAdapterManager
from iacctl.clients.registry.protocols import DestinationRegistry, SourceRegistry

__all__ = [
    "DestinationRegistry",
    "HARDestination",
    "JFrogSource",
    "RegistryAdapterManager",
    "SourceRegistry",
    "hookimpl",
]
