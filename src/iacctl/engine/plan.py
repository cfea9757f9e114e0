"""Remote plan driver.

Runs one plan end to end: workspace lookup, local checks, archive, remote
execution lifecycle, readiness wait, and the stage walk with log output.
Each lifecycle call returns a fresh RemoteExecution snapshot and the
driver always continues from the latest one.
"""

from __future__ import annotations

import io
import os
import tarfile
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import structlog
import typer

from iacctl.clients.jobs import JobClient
from iacctl.contracts import (
    ConfigurationError,
    DefaultPipelineOverride,
    IacctlError,
    OperationCancelled,
    ReadinessTimeoutError,
    RemoteCallError,
    Workspace,
)
from iacctl.core.cancel import CancelToken
from iacctl.core.config import PollingSettings
from iacctl.core.progress import NopReporter, Reporter
from iacctl.engine.log_attach import LogAttacher, StepLogReader
from iacctl.engine.readiness import wait_for_starting_node
from iacctl.engine.walker import ExecutionWalker

PLAN_OPERATION = "plan"

FOLDER_PATH_WARNING = (
    "The workspace is configured with the folder path %s,\n"
    "Harness will upload the following directory and its contents: \n%s"
)
NO_FOLDER_PATH_WARNING = (
    "The workspace has no configured folder path,\n"
    "Harness will upload the following directory and its contents \n%s"
)
FOLDER_PATH_NOT_FOUND = (
    "The folder path configured in the workspace %s does not exist in the current directory"
)
FOLDER_PATH_ERROR = (
    "An error occurred when trying to find the repo root from the current current directory: %s"
)
NO_DEFAULT_PIPELINE = "The workspace has no configured default pipeline"

logger = structlog.get_logger()


class LogReader(StepLogReader, Protocol):
    def set_token(self, token: str) -> None: ...


def resolve_default_pipeline(
    default_pipelines: Mapping[str, DefaultPipelineOverride | None],
    operation: str = PLAN_OPERATION,
) -> str:
    """Pick the pipeline for `operation`; the workspace override wins.

    Raises:
        ConfigurationError: If neither level configures one
    """
    override = default_pipelines.get(operation)
    if override is not None:
        if override.workspace_pipeline is not None:
            return override.workspace_pipeline
        if override.project_pipeline is not None:
            return override.project_pipeline
    raise ConfigurationError(NO_DEFAULT_PIPELINE)


def resolve_repo_root(working_directory: str, workspace: Workspace) -> tuple[str, str]:
    """Find the directory to upload and the warning to show the user.

    The workspace's repository path is relative to the repository root. Run
    from inside that folder, the root is the working directory minus the
    path; run from the root, the path must exist below it.

    Returns:
        (root directory, warning message)

    Raises:
        ConfigurationError: If the path can't be found from here
    """
    if not workspace.repository_path:
        return working_directory, NO_FOLDER_PATH_WARNING % working_directory

    cwd = os.path.normpath(working_directory)
    repository_path = os.path.normpath(workspace.repository_path)

    if cwd == repository_path or cwd.endswith(os.sep + repository_path):
        root = os.path.normpath(cwd[: -len(repository_path)] or os.sep)
        try:
            os.stat(root)
        except OSError as e:
            raise ConfigurationError(FOLDER_PATH_ERROR % e) from e
        return root, FOLDER_PATH_WARNING % (repository_path, root)

    if not os.path.exists(os.path.join(cwd, repository_path)):
        raise ConfigurationError(FOLDER_PATH_NOT_FOUND % repository_path)

    return cwd, FOLDER_PATH_WARNING % (repository_path, cwd)


def _excluded(relative: str) -> bool:
    parts = Path(relative).parts
    for i, part in enumerate(parts):
        if part == ".git":
            return True
        # Provider caches are skipped, downloaded modules are kept
        if part == ".terraform" and i + 1 < len(parts) and parts[i + 1] != "modules":
            return True
    return False


def pack_source(root: str | Path) -> bytes:
    """Gzipped tarball of `root`, without VCS metadata or provider caches.

    Raises:
        OSError: If the tree can't be read
    """
    root = Path(root)
    buffer = io.BytesIO()

    def _filter(info: tarfile.TarInfo) -> tarfile.TarInfo | None:
        relative = info.name[2:] if info.name.startswith("./") else info.name
        return None if _excluded(relative) else info

    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        archive.add(root, arcname=".", filter=_filter)
    return buffer.getvalue()


def custom_arguments(targets: Sequence[str], replacements: Sequence[str]) -> dict[str, list[str]]:
    """Plan arguments forwarded to the remote run, omitting empty ones."""
    args: dict[str, list[str]] = {}
    if replacements:
        args["replace"] = list(replacements)
    if targets:
        args["target"] = list(targets)
    return args


def _confirm(prompt: str) -> bool:
    return typer.confirm(prompt, default=False)


@dataclass(frozen=True)
class PlanRequest:
    """What the user asked to plan."""

    org: str
    project: str
    workspace: str
    targets: tuple[str, ...] = ()
    replacements: tuple[str, ...] = ()
    auto_approve: bool = False
    working_directory: str = field(default_factory=os.getcwd)


def _rewrap(e: Exception, message: str) -> IacctlError:
    """Error of the same kind as `e`, carrying `message`."""
    if isinstance(e, RemoteCallError):
        return type(e)(message, status_code=e.status_code)
    if isinstance(e, (ConfigurationError, ReadinessTimeoutError)):
        return type(e)(message)
    return IacctlError(message)


@contextmanager
def _operation(reporter: Reporter, failure: str, wrap: str) -> Iterator[None]:
    """Report `failure` and prefix the error with `wrap` if the block fails."""
    try:
        yield
    except OperationCancelled:
        reporter.error(failure)
        raise
    except (IacctlError, OSError) as e:
        reporter.error(failure)
        raise _rewrap(e, f"{wrap}: {e}") from e


def run_plan(
    request: PlanRequest,
    *,
    jobs: JobClient,
    logs: LogReader,
    cancel: CancelToken,
    polling: PollingSettings | None = None,
    reporter: Reporter | None = None,
    confirm: Callable[[str], bool] | None = None,
    echo: Callable[[str], None] = typer.echo,
) -> None:
    """Run a remote plan and stream its logs until the pipeline finishes.

    Raises:
        IacctlError: Wrapped with the operation that failed, keeping its kind
        ReadinessTimeoutError: If the pipeline never started in time
        OperationCancelled: If `cancel` fires
    """
    polling = polling or PollingSettings()
    reporter = reporter or NopReporter()
    confirm = confirm or _confirm
    org, project, workspace_id = request.org, request.project, request.workspace

    reporter.start("Fetching workspace information")
    with _operation(reporter, "Failed to fetch workspace", "failed to get workspace"):
        workspace = jobs.get_workspace(org, project, workspace_id)
    reporter.success("Workspace found")

    with _operation(reporter, "Failed to get default pipeline", "failed to get default pipeline"):
        pipeline = resolve_default_pipeline(workspace.default_pipelines)
    echo(f"The plan will execute with the default pipeline: {pipeline}... ")

    with _operation(
        reporter, "Repository path validation failed", "repository path validation failed"
    ):
        repo_root, warning = resolve_repo_root(request.working_directory, workspace)
    echo(warning)

    if not request.auto_approve and not confirm("Do you want to continue?"):
        raise IacctlError("user cancelled")

    reporter.step("Zipping source code")
    with _operation(reporter, "Failed to zip source code", "failed to zip source code"):
        archive = pack_source(repo_root)
    reporter.success(f"Source code zipped ({len(archive)} bytes)")

    cancel.raise_if_cancelled()
    reporter.step("Creating remote execution")
    with _operation(
        reporter, "Failed to create remote execution", "failed to create remote execution"
    ):
        execution = jobs.create_remote_execution(
            org,
            project,
            workspace_id,
            custom_arguments(request.targets, request.replacements),
        )
    reporter.success("Remote execution created")
    logger.debug("Remote execution created", execution=execution.id)

    cancel.raise_if_cancelled()
    reporter.step("Uploading source code")
    with _operation(reporter, "Failed to upload source code", "failed to upload source code"):
        execution = jobs.upload_remote_execution(org, project, workspace_id, execution.id, archive)
    reporter.success("Source code uploaded")

    cancel.raise_if_cancelled()
    reporter.step("Triggering pipeline execution")
    with _operation(reporter, "Failed to trigger execution", "failed to trigger execution"):
        execution = jobs.execute_remote_execution(org, project, workspace_id, execution.id)
    reporter.success("Pipeline execution triggered")
    echo(f"Pipeline execution: {execution.pipeline_execution_url}")

    reporter.step("Getting log token")
    with _operation(reporter, "Failed to get log token", "failed to get log token"):
        logs.set_token(jobs.get_log_token())

    with _operation(reporter, "Failed to get starting node ID", "failed to get starting node ID"):
        starting_node_id = wait_for_starting_node(
            jobs,
            org,
            project,
            execution.pipeline_execution_id,
            cancel,
            interval=polling.readiness_interval_seconds,
            timeout=polling.readiness_timeout_seconds,
        )

    reporter.step("Streaming logs")
    echo("\n=== Pipeline Execution Logs ===")
    attacher = LogAttacher(logs, cancel, echo=echo)
    walker = ExecutionWalker(
        jobs,
        attacher,
        org,
        project,
        cancel,
        stage_interval=polling.stage_interval_seconds,
        step_interval=polling.step_interval_seconds,
        echo=echo,
    )
    try:
        with _operation(reporter, "Log streaming failed", "log streaming failed"):
            walker.walk(execution.pipeline_execution_id, starting_node_id)
    finally:
        attacher.drain(0 if cancel.cancelled else polling.log_drain_seconds)

    reporter.success("Plan execution completed")
    reporter.end()
