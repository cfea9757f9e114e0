"""Tests for the remote execution / pipeline service client."""

import hashlib
import json
from collections.abc import Callable

import httpx
import pytest

from helpers import detail_payload, stage
from iacctl.clients.jobs import JobClient
from iacctl.contracts import JobClientError
from iacctl.core.config import IacctlSettings

WORKSPACE_PATH = "/gateway/iacm/api/orgs/org/projects/proj/workspaces/ws"

EXECUTION = {
    "id": "rex-1",
    "workspace": "ws",
    "pipeline_execution_id": "pe-1",
    "custom_arguments": None,
}


def _client(
    settings_factory: Callable[..., IacctlSettings],
    handler: Callable[[httpx.Request], httpx.Response],
) -> JobClient:
    return JobClient.from_settings(settings_factory(), transport=httpx.MockTransport(handler))


class TestWorkspace:
    def test_get_workspace(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "identifier": "ws",
                    "repository_path": "infra/prod",
                    "default_pipelines": {"plan": {"workspace_pipeline": "wp"}},
                },
            )

        workspace = _client(settings_factory, handler).get_workspace("org", "proj", "ws")

        assert workspace.repository_path == "infra/prod"
        assert workspace.default_pipelines["plan"].workspace_pipeline == "wp"
        assert seen[0].url.path == WORKSPACE_PATH
        assert seen[0].headers["X-Api-Key"] == "key-123"
        assert seen[0].headers["harness-account"] == "acct"

    def test_not_found_raises(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        client = _client(
            settings_factory,
            lambda request: httpx.Response(404, json={"message": "workspace not found"}),
        )
        with pytest.raises(JobClientError, match="workspace not found") as exc_info:
            client.get_workspace("org", "proj", "ws")
        assert exc_info.value.status_code == 404

    def test_transport_error_raises(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(JobClientError, match="refused"):
            _client(settings_factory, handler).get_workspace("org", "proj", "ws")


class TestRemoteExecutionLifecycle:
    def test_create_sends_custom_arguments(
        self, settings_factory: Callable[..., IacctlSettings]
    ) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"{WORKSPACE_PATH}/remote-executions"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=EXECUTION)

        execution = _client(settings_factory, handler).create_remote_execution(
            "org", "proj", "ws", {"target": ("a", "b")}
        )

        assert execution.id == "rex-1"
        assert execution.custom_arguments == {}
        assert bodies == [{"custom_arguments": {"target": ["a", "b"]}}]

    def test_upload_sends_digest(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        data = b"archive-bytes"
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=EXECUTION)

        _client(settings_factory, handler).upload_remote_execution("org", "proj", "ws", "rex-1", data)

        request = seen[0]
        assert request.url.path == f"{WORKSPACE_PATH}/remote-executions/rex-1/upload"
        assert request.content == data
        assert request.headers["Content-Digest"] == f"sha256={hashlib.sha256(data).hexdigest()}"
        assert request.headers["Content-Type"] == "application/octet-stream"

    def test_execute_returns_pipeline_execution(
        self, settings_factory: Callable[..., IacctlSettings]
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == f"{WORKSPACE_PATH}/remote-executions/rex-1/execute"
            return httpx.Response(200, json=EXECUTION)

        execution = _client(settings_factory, handler).execute_remote_execution(
            "org", "proj", "ws", "rex-1"
        )
        assert execution.pipeline_execution_id == "pe-1"

    def test_malformed_response_raises(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        client = _client(settings_factory, lambda request: httpx.Response(200, json={"no": "id"}))
        with pytest.raises(JobClientError, match="RemoteExecution"):
            client.execute_remote_execution("org", "proj", "ws", "rex-1")


class TestPipelineExecution:
    def test_query_and_unwrap(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        seen: list[httpx.Request] = []
        payload = detail_payload(stages=[stage("s1", "Running")], starting_node_id="s1")

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "SUCCESS", "data": payload})

        result = _client(settings_factory, handler).get_pipeline_execution(
            "org", "proj", "pe-1", "s1"
        )

        assert result.is_ready
        assert result.pipeline_execution_summary is not None
        assert result.pipeline_execution_summary.starting_node_id == "s1"
        params = seen[0].url.params
        assert seen[0].url.path == "/pipeline/api/pipelines/execution/v2/pe-1"
        assert params["accountIdentifier"] == "acct"
        assert params["orgIdentifier"] == "org"
        assert params["projectIdentifier"] == "proj"
        assert params["stageNodeId"] == "s1"
        assert params["renderFullBottomGraph"] == "true"

    def test_missing_data_is_not_ready(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        client = _client(settings_factory, lambda request: httpx.Response(200, json={"data": None}))
        assert not client.get_pipeline_execution("org", "proj", "pe-1").is_ready

    def test_server_error_raises(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        client = _client(
            settings_factory,
            lambda request: httpx.Response(500, json={"status": {"message": "internal"}}),
        )
        with pytest.raises(JobClientError, match="internal"):
            client.get_pipeline_execution("org", "proj", "pe-1")


class TestLogToken:
    def test_returns_stripped_token(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/gateway/log-service/token"
            assert request.url.params["accountID"] == "acct"
            assert request.url.params["routingId"] == "acct"
            return httpx.Response(200, text="tok-abc\n")

        assert _client(settings_factory, handler).get_log_token() == "tok-abc"

    def test_unauthorised_raises(self, settings_factory: Callable[..., IacctlSettings]) -> None:
        client = _client(settings_factory, lambda request: httpx.Response(401, text="denied"))
        with pytest.raises(JobClientError, match="denied"):
            client.get_log_token()
