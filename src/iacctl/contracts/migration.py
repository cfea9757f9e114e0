"""Artifact migration contracts.

Artifact is created when listed from the source registry and never mutated;
the orchestrator derives a copy pointing at the destination registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from iacctl.contracts.enums import ArtifactStatus


@dataclass(frozen=True)
class Artifact:
    """A single artifact version in a registry."""

    name: str
    version: str
    type: str = ""
    registry: str = ""
    size: int = 0
    properties: dict[str, str] = field(default_factory=dict)

    @property
    def ref(self) -> str:
        return f"{self.name}:{self.version}"

    def in_registry(self, registry: str) -> Artifact:
        """Same artifact addressed in another registry."""
        return replace(self, registry=registry)


@dataclass(frozen=True)
class ArtifactUpdate:
    """Status update sent to the migration tracker."""

    package: str
    version: str
    status: ArtifactStatus
    error: str = ""

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "package": self.package,
            "version": self.version,
            "status": self.status.value,
        }
        if self.error:
            payload["error"] = self.error
        return payload


class StatusCounters(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    not_started: int = Field(default=0, alias="NOTSTARTED")
    started: int = Field(default=0, alias="STARTED")
    completed: int = Field(default=0, alias="COMPLETED")
    failed: int = Field(default=0, alias="FAILED")
    skipped: int = Field(default=0, alias="SKIPPED")


class MigrationStatus(BaseModel):
    """Tracker view of one migration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = ""
    registry: str = Field(default="", alias="ar")
    parent_ref: str = Field(default="", alias="parentRef")
    total_images: int = Field(default=0, alias="totalImages")
    status: StatusCounters = Field(default_factory=StatusCounters)


@dataclass
class MappingResult:
    """Outcome of migrating one source registry to one destination registry."""

    source_registry: str
    destination_registry: str
    migration_id: str = ""
    total: int = 0
    failed_artifacts: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class MigrationSummary:
    """Outcome of a whole migration run."""

    mappings: list[MappingResult] = field(default_factory=list)

    @property
    def failed_mappings(self) -> list[MappingResult]:
        return [m for m in self.mappings if not m.succeeded]

    @property
    def total_artifacts(self) -> int:
        return sum(m.total for m in self.mappings)
