"""Core infrastructure: Configuration, Logging, Cancellation, Progress."""

from iacctl.core.cancel import (
    CancelToken,
    cancel_on_signals,
)
from iacctl.core.config import (
    HTTPSettings,
    IacctlSettings,
    MigrationConfig,
    PollingSettings,
    RegistryMapping,
    load_migration_config,
    load_settings,
)
from iacctl.core.logging import (
    configure_logging,
    get_logger,
)
from iacctl.core.progress import (
    ConsoleReporter,
    NopReporter,
    Reporter,
)

__all__ = [
    "CancelToken",
    "ConsoleReporter",
    "HTTPSettings",
    "IacctlSettings",
    "MigrationConfig",
    "NopReporter",
    "PollingSettings",
    "RegistryMapping",
    "Reporter",
    "cancel_on_signals",
    "configure_logging",
    "get_logger",
    "load_migration_config",
    "load_settings",
]
