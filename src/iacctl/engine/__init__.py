"""Orchestration engine: plan driver, graph walkers, migration pool."""

from iacctl.engine.log_attach import LogAttacher
from iacctl.engine.migration import (
    ArtifactMigrationPool,
    ArtifactMigrator,
    MigrationService,
    matches_patterns,
)
from iacctl.engine.plan import (
    PlanRequest,
    pack_source,
    resolve_default_pipeline,
    resolve_repo_root,
    run_plan,
)
from iacctl.engine.readiness import wait_for_starting_node
from iacctl.engine.traversal import (
    next_active_stage,
    next_active_step,
    next_inactive_step,
)
from iacctl.engine.walker import ExecutionWalker

__all__ = [
    "ArtifactMigrationPool",
    "ArtifactMigrator",
    "ExecutionWalker",
    "LogAttacher",
    "MigrationService",
    "PlanRequest",
    "matches_patterns",
    "next_active_stage",
    "next_active_step",
    "next_inactive_step",
    "pack_source",
    "resolve_default_pipeline",
    "resolve_repo_root",
    "run_plan",
    "wait_for_starting_node",
]
