"""Shared contracts for cross-boundary data types.

Wire models, enums, and errors that cross the client/engine/CLI boundaries
are defined here.

Import pattern:
    from iacctl.contracts import ExecutionGraph, FailureMode, JobClientError
"""

from iacctl.contracts.enums import (
    ACTIVE_STATUSES,
    IGNORED_NODE_TYPES,
    TERMINAL_STATUSES,
    ArtifactStatus,
    ExecutionStatus,
    FailureMode,
    RegistryType,
    is_active_status,
    is_ignored_type,
    is_terminal_status,
)
from iacctl.contracts.errors import (
    ConfigurationError,
    IacctlError,
    JobClientError,
    LogClientError,
    MigrationError,
    OperationCancelled,
    ReadinessTimeoutError,
    RegistryError,
    RemoteCallError,
    TrackerError,
)
from iacctl.contracts.execution import (
    DefaultPipelineOverride,
    EdgeLayoutList,
    ExecutionAdjacency,
    ExecutionGraph,
    ExecutionNode,
    GraphLayoutNode,
    PipelineExecutionDetail,
    PipelineExecutionSummary,
    RemoteExecution,
    Workspace,
)
from iacctl.contracts.migration import (
    Artifact,
    ArtifactUpdate,
    MappingResult,
    MigrationStatus,
    MigrationSummary,
    StatusCounters,
)

__all__ = [
    "ACTIVE_STATUSES",
    "IGNORED_NODE_TYPES",
    "TERMINAL_STATUSES",
    "Artifact",
    "ArtifactStatus",
    "ArtifactUpdate",
    "ConfigurationError",
    "DefaultPipelineOverride",
    "EdgeLayoutList",
    "ExecutionAdjacency",
    "ExecutionGraph",
    "ExecutionNode",
    "ExecutionStatus",
    "FailureMode",
    "GraphLayoutNode",
    "IacctlError",
    "JobClientError",
    "LogClientError",
    "MappingResult",
    "MigrationError",
    "MigrationStatus",
    "MigrationSummary",
    "OperationCancelled",
    "PipelineExecutionDetail",
    "PipelineExecutionSummary",
    "ReadinessTimeoutError",
    "RegistryError",
    "RegistryType",
    "RemoteCallError",
    "RemoteExecution",
    "StatusCounters",
    "TrackerError",
    "Workspace",
    "is_active_status",
    "is_ignored_type",
    "is_terminal_status",
]
