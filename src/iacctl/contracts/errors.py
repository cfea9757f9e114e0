"""Error taxonomy shared by clients, engine, and CLI.

Fatal errors propagate and are wrapped with the failing operation by the
caller. Best-effort failures (status updates, log attachment) never leave
the component that hit them; they are logged instead.
"""

from __future__ import annotations

from collections.abc import Sequence


class IacctlError(Exception):
    """Base class for all iacctl errors."""


class ConfigurationError(IacctlError):
    """Local configuration or workspace setup prevents the operation from starting."""


class RemoteCallError(IacctlError):
    """A remote service call failed at the transport or server level.

    Attributes:
        status_code: HTTP status when the server answered, else None
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class JobClientError(RemoteCallError):
    """Remote execution or pipeline service call failed."""


class LogClientError(RemoteCallError):
    """Log service call failed or returned unreadable lines."""


class TrackerError(RemoteCallError):
    """Migration tracker call failed."""


class RegistryError(RemoteCallError):
    """Source or destination registry call failed."""


class ReadinessTimeoutError(IacctlError):
    """The remote pipeline never reached the expected state in time.

    Distinct from RemoteCallError: the network worked, the server just
    never started the execution.
    """


class OperationCancelled(IacctlError):
    """The cancel token fired (interrupt, deadline, or stop request)."""

    def __init__(self, message: str = "context cancelled") -> None:
        super().__init__(message)


class MigrationError(IacctlError):
    """One or more artifacts or mappings failed to migrate.

    Attributes:
        error_count: Number of failures folded into this error
        failed: Identifiers of what failed (artifact "name:version" or mapping)
    """

    def __init__(self, message: str, *, error_count: int, failed: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.error_count = error_count
        self.failed = tuple(failed)
