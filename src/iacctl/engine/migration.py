"""Registry migration: a bounded worker pool over artifacts, per mapping.

Per-artifact status updates go to the migration tracker on a best-effort
basis; a tracker outage never fails an artifact that actually moved.
"""

from __future__ import annotations

import fnmatch
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Semaphore
from typing import Protocol

import structlog

from iacctl.clients.registry.protocols import DestinationRegistry, SourceRegistry
from iacctl.contracts import (
    Artifact,
    ArtifactStatus,
    ArtifactUpdate,
    FailureMode,
    IacctlError,
    MappingResult,
    MigrationError,
    MigrationSummary,
    OperationCancelled,
)
from iacctl.core.cancel import CancelToken
from iacctl.core.config import MigrationConfig, RegistryMapping
from iacctl.core.progress import NopReporter, Reporter

DEFAULT_CONCURRENCY = 5

# Slice for semaphore waits, so cancellation is noticed while the pool is full
_ACQUIRE_SLICE_SECONDS = 0.1

logger = structlog.get_logger()

ProcessFn = Callable[[Artifact, CancelToken], None]


class StatusTracker(Protocol):
    def start_migration(self, registry_id: str, total: int, account_id: str | None = None) -> str: ...

    def update_artifact_status(self, migration_id: str, update: ArtifactUpdate) -> None: ...

    def create_registry(self, scoped_name: str, package_type: str) -> None: ...


class ArtifactMigrationPool:
    """Runs one function per artifact with at most `concurrency` in flight.

    Every artifact is dispatched as soon as a slot frees up. In STOP mode
    the first failure stops further dispatch; artifacts already running
    are not interrupted but see the stop at their next cancellation check.
    Failures are collected and reported together once everything
    in flight has returned.

    Usage:
        pool = ArtifactMigrationPool(concurrency=3, failure_mode=FailureMode.CONTINUE)
        pool.run(artifacts, migrate_one, cancel)
    """

    def __init__(self, concurrency: int, failure_mode: FailureMode = FailureMode.CONTINUE) -> None:
        self._concurrency = concurrency if concurrency > 0 else DEFAULT_CONCURRENCY
        self._failure_mode = failure_mode
        self._semaphore = Semaphore(self._concurrency)
        self._lock = threading.Lock()
        self._failed: list[str] = []

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def run(self, artifacts: Sequence[Artifact], process: ProcessFn, cancel: CancelToken) -> None:
        """Process every artifact.

        Raises:
            OperationCancelled: If `cancel` fired; in-flight work is awaited first
            MigrationError: If any artifact failed, listing the failed refs
        """
        self._failed = []
        # Narrower scope so a STOP-mode failure halts dispatch without touching the caller
        scope = cancel.child()
        futures: list[Future[None]] = []

        logger.info("Processing artifacts", count=len(artifacts), concurrency=self._concurrency)
        with ThreadPoolExecutor(max_workers=self._concurrency) as executor:
            for artifact in artifacts:
                if not self._acquire(scope):
                    break
                futures.append(executor.submit(self._execute_single, artifact, process, scope))
            wait(futures)

        if cancel.cancelled:
            logger.warning("Migration cancelled", reason=cancel.reason)
            raise OperationCancelled(cancel.reason)
        if self._failed:
            raise MigrationError(
                f"migration completed with {len(self._failed)} errors",
                error_count=len(self._failed),
                failed=self._failed,
            )

    def _acquire(self, scope: CancelToken) -> bool:
        while not self._semaphore.acquire(timeout=_ACQUIRE_SLICE_SECONDS):
            if scope.cancelled:
                return False
        if scope.cancelled:
            self._semaphore.release()
            return False
        return True

    def _execute_single(self, artifact: Artifact, process: ProcessFn, scope: CancelToken) -> None:
        try:
            process(artifact, scope)
        except OperationCancelled:
            logger.info("Artifact skipped after stop", artifact=artifact.ref)
        except Exception as e:
            # Worker boundary: every failure is folded into the aggregate error
            logger.error("Error processing artifact", artifact=artifact.ref, error=str(e))
            with self._lock:
                self._failed.append(artifact.ref)
            if self._failure_mode is FailureMode.STOP:
                scope.cancel("migration stopped after failure")
        finally:
            self._semaphore.release()


class ArtifactMigrator:
    """Moves one artifact from the source to the destination registry.

    Args:
        source: Registry to download from
        destination: Registry to upload to
        tracker: Receives per-artifact status
        migration_id: Tracker id of the running mapping
        destination_registry: Registry the copy lands in
        dry_run: Only report what would move
        overwrite: Upload even if the destination already has the artifact
    """

    def __init__(
        self,
        source: SourceRegistry,
        destination: DestinationRegistry,
        tracker: StatusTracker,
        migration_id: str,
        destination_registry: str,
        *,
        dry_run: bool = False,
        overwrite: bool = False,
    ) -> None:
        self._source = source
        self._destination = destination
        self._tracker = tracker
        self._migration_id = migration_id
        self._destination_registry = destination_registry
        self._dry_run = dry_run
        self._overwrite = overwrite

    def _report(self, artifact: Artifact, status: ArtifactStatus, error: str = "") -> None:
        update = ArtifactUpdate(artifact.name, artifact.version, status, error)
        try:
            self._tracker.update_artifact_status(self._migration_id, update)
        except IacctlError as e:
            logger.warning(
                "Failed to update artifact status",
                artifact=artifact.ref,
                status=status.value,
                error=str(e),
            )

    def _already_present(self, target: Artifact) -> bool:
        # Existence checks are optional for destination adapters
        exists = getattr(self._destination, "artifact_exists", None)
        if exists is None:
            return False
        try:
            return bool(exists(target))
        except IacctlError as e:
            logger.warning("Existence check failed, uploading", artifact=target.ref, error=str(e))
            return False

    def __call__(self, artifact: Artifact, cancel: CancelToken) -> None:
        """Migrate `artifact`.

        Raises:
            IacctlError: If download or upload fails (already reported as FAILED)
            OperationCancelled: If `cancel` fired between download and upload
        """
        self._report(artifact, ArtifactStatus.STARTED)

        if self._dry_run:
            logger.info("DRY RUN: Would migrate artifact", artifact=artifact.ref)
            self._report(artifact, ArtifactStatus.COMPLETED)
            return

        target = artifact.in_registry(self._destination_registry)
        if not self._overwrite and self._already_present(target):
            logger.info("Artifact already present, skipping", artifact=artifact.ref)
            self._report(artifact, ArtifactStatus.SKIPPED)
            return

        logger.debug("Downloading artifact", artifact=artifact.ref)
        try:
            data = self._source.download_artifact(artifact)
        except IacctlError as e:
            self._report(artifact, ArtifactStatus.FAILED, f"Failed to download: {e}")
            raise IacctlError(f"failed to download artifact: {e}") from e

        cancel.raise_if_cancelled()

        logger.debug("Uploading artifact", artifact=artifact.ref, registry=target.registry)
        try:
            self._destination.upload_artifact(target, data)
        except IacctlError as e:
            self._report(artifact, ArtifactStatus.FAILED, f"Failed to upload: {e}")
            raise IacctlError(f"failed to upload artifact: {e}") from e

        self._report(artifact, ArtifactStatus.COMPLETED)


def matches_patterns(name: str, include: Sequence[str], exclude: Sequence[str]) -> bool:
    """Glob filter on artifact names; an empty include list admits everything."""
    if include and not any(fnmatch.fnmatchcase(name, p) for p in include):
        return False
    return not any(fnmatch.fnmatchcase(name, p) for p in exclude)


class MigrationService:
    """Migrates every mapping in a plan, one after the other.

    Args:
        config: Validated migration plan
        source: Source registry adapter
        destination: Destination registry adapter
        tracker: Migration tracker client
        cancel: Run-wide cancel token
        account_id: Account recorded on tracked migrations
        reporter: Progress output
    """

    def __init__(
        self,
        config: MigrationConfig,
        source: SourceRegistry,
        destination: DestinationRegistry,
        tracker: StatusTracker,
        cancel: CancelToken,
        *,
        account_id: str | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self._config = config
        self._source = source
        self._destination = destination
        self._tracker = tracker
        self._cancel = cancel
        self._account_id = account_id
        self._reporter = reporter or NopReporter()

    @property
    def _stop_on_failure(self) -> bool:
        return self._config.migration.failure_mode is FailureMode.STOP

    def run(self) -> MigrationSummary:
        """Run every mapping.

        Raises:
            MigrationError: In STOP mode, on the first failed mapping
            OperationCancelled: If the cancel token fires
        """
        summary = MigrationSummary()
        logger.info(
            "Starting migration process",
            source_type=self._config.source.type.value,
            destination_type=self._config.destination.type.value,
        )

        for mapping in self._config.mappings:
            self._cancel.raise_if_cancelled()
            allowed = self._config.filters.registries
            if allowed and mapping.source_registry not in allowed:
                logger.info("Mapping filtered out", source=mapping.source_registry)
                continue

            result = MappingResult(mapping.source_registry, mapping.destination_registry)
            summary.mappings.append(result)
            self._reporter.step(
                f"Migrating {mapping.source_registry} to {mapping.destination_registry}"
            )
            try:
                self._process_mapping(mapping, result)
            except OperationCancelled:
                self._reporter.error("Migration cancelled")
                raise
            except IacctlError as e:
                result.error = str(e)
                self._reporter.error(str(e))
                logger.error(
                    "Error processing mapping",
                    source=mapping.source_registry,
                    destination=mapping.destination_registry,
                    error=str(e),
                )
                if self._stop_on_failure:
                    raise MigrationError(
                        f"migration stopped due to error in mapping: {e}",
                        error_count=max(len(result.failed_artifacts), 1),
                        failed=result.failed_artifacts or [mapping.source_registry],
                    ) from e
                logger.info("Continuing with next mapping due to 'continue' failure mode")
                continue
            self._reporter.success(
                f"Migrated {result.total} artifacts from {mapping.source_registry}"
            )

        logger.info("Migration process completed", mappings=len(summary.mappings))
        return summary

    def _select(self, artifacts: Sequence[Artifact], mapping: RegistryMapping) -> list[Artifact]:
        patterns = mapping.artifact_name_patterns
        wanted_type = self._config.filters.artifact_type.upper()
        return [
            a
            for a in artifacts
            if matches_patterns(a.name, patterns.include, patterns.exclude)
            and a.type.upper() == wanted_type
        ]

    def _process_mapping(self, mapping: RegistryMapping, result: MappingResult) -> None:
        package_type = self._config.filters.artifact_type.upper()
        try:
            self._tracker.create_registry(mapping.destination_registry, package_type)
        except IacctlError as e:
            raise IacctlError(f"failed to ensure destination registry: {e}") from e

        try:
            listed = self._source.list_artifacts(mapping.source_registry)
        except IacctlError as e:
            raise IacctlError(f"failed to list artifacts from source registry: {e}") from e

        artifacts = self._select(listed, mapping)
        result.total = len(artifacts)
        logger.info("Found artifacts to migrate", count=len(artifacts), listed=len(listed))

        try:
            result.migration_id = self._tracker.start_migration(
                mapping.source_registry, len(artifacts), self._account_id
            )
        except IacctlError as e:
            raise IacctlError(f"failed to start migration tracking: {e}") from e
        logger.info("Migration tracking started", migration_id=result.migration_id)

        migrator = ArtifactMigrator(
            self._source,
            self._destination,
            self._tracker,
            result.migration_id,
            mapping.destination_registry,
            dry_run=self._config.migration.dry_run,
            overwrite=self._config.overwrite,
        )
        pool = ArtifactMigrationPool(
            self._config.migration.concurrency, self._config.migration.failure_mode
        )
        try:
            pool.run(artifacts, migrator, self._cancel)
        except MigrationError as e:
            result.failed_artifacts = list(e.failed)
            raise
