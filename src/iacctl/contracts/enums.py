"""Status codes, modes, and kinds used across subsystem boundaries.

Pipeline statuses come from the remote execution service verbatim. Values
outside the known vocabulary are legal on the wire and classify as neither
active nor terminal.
"""

from enum import Enum


class ExecutionStatus(str, Enum):
    """Status of a stage or step in a pipeline execution.

    Uses (str, Enum) so raw wire strings compare equal to members.
    """

    NOT_STARTED = "NotStarted"
    QUEUED = "Queued"
    RUNNING = "Running"
    ASYNC_WAITING = "AsyncWaiting"
    SUCCESS = "Success"
    FAILED = "Failed"
    IGNORE_FAILED = "IgnoreFailed"


ACTIVE_STATUSES = frozenset(
    {
        ExecutionStatus.RUNNING,
        ExecutionStatus.QUEUED,
        ExecutionStatus.ASYNC_WAITING,
        ExecutionStatus.NOT_STARTED,
    }
)

TERMINAL_STATUSES = frozenset(
    {
        ExecutionStatus.SUCCESS,
        ExecutionStatus.FAILED,
        ExecutionStatus.IGNORE_FAILED,
    }
)

# Orchestration wrappers the server inserts around user stages and steps.
IGNORED_NODE_TYPES = frozenset(
    {
        "IACMIntegrationStageStepPMS",
        "IntegrationStageStepPMS",
        "NG_EXECUTION",
        "IACMPrepareExecution",
    }
)


def is_active_status(status: str) -> bool:
    """Node has not finished yet."""
    return status in ACTIVE_STATUSES


def is_terminal_status(status: str) -> bool:
    """Node is done, successfully or not."""
    return status in TERMINAL_STATUSES


def is_ignored_type(node_type: str) -> bool:
    """Node is an internal wrapper that is never shown to the user."""
    return node_type in IGNORED_NODE_TYPES


class FailureMode(str, Enum):
    """What a migration does after an artifact or mapping fails.

    Values:
        CONTINUE: Log the failure and keep going
        STOP: Stop dispatching new work and report the failure
    """

    CONTINUE = "continue"
    STOP = "stop"


class ArtifactStatus(str, Enum):
    """Per-artifact status reported to the migration tracker.

    Uses (str, Enum) because this IS sent on the wire.
    """

    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class RegistryType(str, Enum):
    """Kinds of registry a migration can read from or write to."""

    HAR = "HAR"
    JFROG = "JFROG"
