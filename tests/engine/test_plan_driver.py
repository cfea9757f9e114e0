"""Tests for the remote plan driver and its local preparation steps."""

import io
import os
import tarfile
from pathlib import Path

import pytest

from helpers import ScriptedPoller, detail, stage, step
from iacctl.contracts import (
    ConfigurationError,
    DefaultPipelineOverride,
    IacctlError,
    JobClientError,
    OperationCancelled,
    PipelineExecutionDetail,
    ReadinessTimeoutError,
    RemoteExecution,
    Workspace,
)
from iacctl.core.cancel import CancelToken
from iacctl.core.config import PollingSettings
from iacctl.engine.log_attach import STEP_BANNER
from iacctl.engine.plan import (
    FOLDER_PATH_NOT_FOUND,
    NO_DEFAULT_PIPELINE,
    PlanRequest,
    custom_arguments,
    pack_source,
    resolve_default_pipeline,
    resolve_repo_root,
    run_plan,
)
from iacctl.engine.walker import STAGE_BANNER

FAST = PollingSettings(
    stage_interval_seconds=0.001,
    step_interval_seconds=0.001,
    readiness_interval_seconds=0.001,
    readiness_timeout_seconds=1,
    log_drain_seconds=1,
)


class TestResolveDefaultPipeline:
    def test_workspace_level_wins(self) -> None:
        pipelines = {
            "plan": DefaultPipelineOverride(project_pipeline="pp", workspace_pipeline="wp")
        }
        assert resolve_default_pipeline(pipelines) == "wp"

    def test_project_level_fallback(self) -> None:
        pipelines = {"plan": DefaultPipelineOverride(project_pipeline="pp")}
        assert resolve_default_pipeline(pipelines) == "pp"

    def test_other_operation_ignored(self) -> None:
        pipelines = {"apply": DefaultPipelineOverride(workspace_pipeline="wp")}
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_default_pipeline(pipelines)
        assert str(exc_info.value) == NO_DEFAULT_PIPELINE

    @pytest.mark.parametrize("pipelines", [{}, {"plan": None}, {"plan": DefaultPipelineOverride()}])
    def test_none_configured(self, pipelines: dict) -> None:
        with pytest.raises(ConfigurationError, match="no configured default pipeline"):
            resolve_default_pipeline(pipelines)


class TestResolveRepoRoot:
    def test_no_repository_path(self, tmp_path: Path) -> None:
        root, warning = resolve_repo_root(str(tmp_path), Workspace())
        assert root == str(tmp_path)
        assert "no configured folder path" in warning
        assert warning.endswith(str(tmp_path))

    def test_run_from_inside_folder(self, tmp_path: Path) -> None:
        inner = tmp_path / "infra" / "prod"
        inner.mkdir(parents=True)
        root, warning = resolve_repo_root(str(inner), Workspace(repository_path="infra/prod"))
        assert root == str(tmp_path)
        assert "folder path infra/prod" in warning

    def test_run_from_repo_root(self, tmp_path: Path) -> None:
        (tmp_path / "infra" / "prod").mkdir(parents=True)
        root, _ = resolve_repo_root(str(tmp_path), Workspace(repository_path="infra/prod"))
        assert root == str(tmp_path)

    def test_trailing_slash_in_repository_path(self, tmp_path: Path) -> None:
        inner = tmp_path / "infra"
        inner.mkdir()
        root, _ = resolve_repo_root(str(inner), Workspace(repository_path="infra/"))
        assert root == str(tmp_path)

    def test_path_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_repo_root(str(tmp_path), Workspace(repository_path="infra/prod"))
        assert str(exc_info.value) == FOLDER_PATH_NOT_FOUND % "infra/prod"

    def test_suffix_match_respects_path_boundary(self, tmp_path: Path) -> None:
        inner = tmp_path / "preprod"
        inner.mkdir()
        with pytest.raises(ConfigurationError):
            resolve_repo_root(str(inner), Workspace(repository_path="prod"))


class TestPackSource:
    def test_excludes_vcs_and_provider_cache(self, tmp_path: Path) -> None:
        files = [
            "main.tf",
            "modules/net/main.tf",
            ".git/config",
            "vendored/.git/HEAD",
            ".terraform/providers/registry/aws",
            ".terraform/modules/vpc/main.tf",
            ".terraform.lock.hcl",
        ]
        for name in files:
            path = tmp_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(name)

        data = pack_source(tmp_path)

        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as archive:
            names = {n[2:] if n.startswith("./") else n for n in archive.getnames()}
        assert {"main.tf", "modules/net/main.tf", ".terraform/modules/vpc/main.tf", ".terraform.lock.hcl"} <= names
        assert not any(".git" in Path(n).parts for n in names)
        assert not any(n.startswith(".terraform/providers") for n in names)

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            pack_source(tmp_path / "absent")


class TestCustomArguments:
    def test_both(self) -> None:
        assert custom_arguments(["module.a"], ["aws_instance.b"]) == {
            "replace": ["aws_instance.b"],
            "target": ["module.a"],
        }

    def test_empty_omitted(self) -> None:
        assert custom_arguments([], []) == {}


class RecordingReporter:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def start(self, message: str) -> None:
        self.events.append(("start", message))

    def step(self, message: str) -> None:
        self.events.append(("step", message))

    def success(self, message: str) -> None:
        self.events.append(("success", message))

    def error(self, message: str) -> None:
        self.events.append(("error", message))

    def end(self) -> None:
        self.events.append(("end", ""))


class FakeJobs:
    """In-memory remote execution service."""

    def __init__(self, poller: ScriptedPoller, workspace: Workspace | None = None) -> None:
        self._poller = poller
        self.workspace = workspace or Workspace(
            identifier="ws",
            default_pipelines={"plan": DefaultPipelineOverride(workspace_pipeline="wp")},
        )
        self.calls: list[str] = []
        self.uploaded = b""
        self.arguments: dict = {}
        self.workspace_error: Exception | None = None

    def _execution(self, **kwargs: str) -> RemoteExecution:
        return RemoteExecution(id="rex-1", **kwargs)

    def get_workspace(self, org: str, project: str, workspace: str) -> Workspace:
        self.calls.append("get_workspace")
        if self.workspace_error is not None:
            raise self.workspace_error
        return self.workspace

    def create_remote_execution(self, org, project, workspace, custom_arguments=None):
        self.calls.append("create")
        self.arguments = custom_arguments
        return self._execution()

    def upload_remote_execution(self, org, project, workspace, execution_id, data):
        self.calls.append("upload")
        self.uploaded = data
        return self._execution()

    def execute_remote_execution(self, org, project, workspace, execution_id):
        self.calls.append("execute")
        return self._execution(
            pipeline_execution_id="pe-1", pipeline_execution_url="https://app.test/pe-1"
        )

    def get_log_token(self) -> str:
        self.calls.append("token")
        return "log-token"

    def get_pipeline_execution(self, org, project, execution_id, stage_node_id=""):
        return self._poller.get_pipeline_execution(org, project, execution_id, stage_node_id)


class FakeLogs:
    def __init__(self) -> None:
        self.token = ""
        self.keys: list[str] = []

    def set_token(self, token: str) -> None:
        self.token = token

    def blob(self, key: str) -> int:
        self.keys.append(key)
        return 1

    def tail(self, key: str, cancel: CancelToken | None = None) -> None:
        raise AssertionError("finished steps are never tailed")


def _finished_pipeline() -> ScriptedPoller:
    running = detail(stages=[stage("s1", "Running")], starting_node_id="s1")
    done = detail(stages=[stage("s1", "Success")], starting_node_id="s1")
    return ScriptedPoller(
        {
            "": [running, running, done],
            "s1": [
                detail(
                    stages=[stage("s1", "Success", name="Plan")],
                    steps=[step("init", "Success"), step("plan", "Success")],
                    adjacency={"init": {"children": [], "nextIds": ["plan"]}},
                    root="init",
                )
            ],
        }
    )


def _request(tmp_path: Path, **kwargs) -> PlanRequest:
    (tmp_path / "main.tf").write_text('resource "null_resource" "x" {}\n')
    kwargs.setdefault("auto_approve", True)
    return PlanRequest(org="org", project="proj", workspace="ws", working_directory=str(tmp_path), **kwargs)


class TestRunPlan:
    def test_full_run(self, tmp_path: Path) -> None:
        jobs = FakeJobs(_finished_pipeline())
        logs = FakeLogs()
        reporter = RecordingReporter()
        echoed: list[str] = []

        run_plan(
            _request(tmp_path, targets=("module.a",)),
            jobs=jobs,  # type: ignore[arg-type]
            logs=logs,
            cancel=CancelToken(timeout=10),
            polling=FAST,
            reporter=reporter,
            echo=echoed.append,
        )

        assert jobs.calls == ["get_workspace", "create", "upload", "execute", "token"]
        assert jobs.arguments == {"target": ["module.a"]}
        assert tarfile.open(fileobj=io.BytesIO(jobs.uploaded), mode="r:gz").getnames()
        assert logs.token == "log-token"
        assert sorted(logs.keys) == ["logs/init", "logs/plan"]
        assert "The plan will execute with the default pipeline: wp... " in echoed
        assert "Pipeline execution: https://app.test/pe-1" in echoed
        assert STAGE_BANNER % "s1" in echoed
        assert STEP_BANNER % "plan" in echoed
        assert ("success", "Plan execution completed") in reporter.events
        assert reporter.events[-1] == ("end", "")
        assert not [e for e in reporter.events if e[0] == "error"]

    def test_confirmation_refused(self, tmp_path: Path) -> None:
        jobs = FakeJobs(_finished_pipeline())
        prompts: list[str] = []

        def refuse(prompt: str) -> bool:
            prompts.append(prompt)
            return False

        with pytest.raises(IacctlError, match="user cancelled"):
            run_plan(
                _request(tmp_path, auto_approve=False),
                jobs=jobs,  # type: ignore[arg-type]
                logs=FakeLogs(),
                cancel=CancelToken(),
                polling=FAST,
                confirm=refuse,
                echo=lambda line: None,
            )
        assert prompts == ["Do you want to continue?"]
        assert jobs.calls == ["get_workspace"]

    def test_workspace_error_wrapped(self, tmp_path: Path) -> None:
        jobs = FakeJobs(_finished_pipeline())
        jobs.workspace_error = JobClientError("workspace not found", status_code=404)
        reporter = RecordingReporter()

        with pytest.raises(IacctlError) as exc_info:
            run_plan(
                _request(tmp_path),
                jobs=jobs,  # type: ignore[arg-type]
                logs=FakeLogs(),
                cancel=CancelToken(),
                reporter=reporter,
                echo=lambda line: None,
            )
        assert str(exc_info.value) == "failed to get workspace: workspace not found"
        assert isinstance(exc_info.value, JobClientError)
        assert exc_info.value.status_code == 404
        assert ("error", "Failed to fetch workspace") in reporter.events

    def test_missing_default_pipeline(self, tmp_path: Path) -> None:
        jobs = FakeJobs(_finished_pipeline(), workspace=Workspace(identifier="ws"))
        with pytest.raises(IacctlError) as exc_info:
            run_plan(
                _request(tmp_path),
                jobs=jobs,  # type: ignore[arg-type]
                logs=FakeLogs(),
                cancel=CancelToken(),
                echo=lambda line: None,
            )
        assert str(exc_info.value) == f"failed to get default pipeline: {NO_DEFAULT_PIPELINE}"

    def test_repository_path_error(self, tmp_path: Path) -> None:
        workspace = Workspace(
            identifier="ws",
            repository_path="does/not/exist",
            default_pipelines={"plan": DefaultPipelineOverride(project_pipeline="pp")},
        )
        jobs = FakeJobs(_finished_pipeline(), workspace=workspace)
        with pytest.raises(ConfigurationError, match="^repository path validation failed: "):
            run_plan(
                _request(tmp_path),
                jobs=jobs,  # type: ignore[arg-type]
                logs=FakeLogs(),
                cancel=CancelToken(),
                echo=lambda line: None,
            )
        assert "create" not in jobs.calls

    def test_pipeline_never_starts(self, tmp_path: Path) -> None:
        queued = detail(stages=[stage("s1", "Queued")], starting_node_id="s1")
        jobs = FakeJobs(ScriptedPoller({"": [queued]}))
        polling = PollingSettings(readiness_interval_seconds=0.01, readiness_timeout_seconds=0.05)

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            run_plan(
                _request(tmp_path),
                jobs=jobs,  # type: ignore[arg-type]
                logs=FakeLogs(),
                cancel=CancelToken(),
                polling=polling,
                echo=lambda line: None,
            )
        assert str(exc_info.value) == (
            "failed to get starting node ID: "
            "The pipeline execution was not started after 0.05 seconds"
        )

    def test_cancel_passes_through(self, tmp_path: Path) -> None:
        token = CancelToken()

        def cancel_and_wait() -> PipelineExecutionDetail:
            token.cancel("interrupted")
            return PipelineExecutionDetail()

        jobs = FakeJobs(ScriptedPoller({"": [cancel_and_wait]}))
        with pytest.raises(OperationCancelled, match="interrupted"):
            run_plan(
                _request(tmp_path),
                jobs=jobs,  # type: ignore[arg-type]
                logs=FakeLogs(),
                cancel=token,
                polling=FAST,
                echo=lambda line: None,
            )


def test_working_directory_defaults_to_cwd() -> None:
    assert PlanRequest(org="o", project="p", workspace="w").working_directory == os.getcwd()
