"""Remote execution and pipeline service client.

Wraps the lifecycle of a remote plan: workspace lookup, create, upload,
execute, status polling, and log token issue. Every call either returns a
fresh validated snapshot or raises JobClientError; there is no retry here
beyond the transport's connection retries.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from iacctl.clients.base import HTTPServiceClient, build_http_client, error_message
from iacctl.contracts import (
    JobClientError,
    PipelineExecutionDetail,
    RemoteExecution,
    Workspace,
)
from iacctl.core.config import IacctlSettings

API_KEY_HEADER = "X-Api-Key"
ACCOUNT_HEADER = "harness-account"

_WORKSPACES = "/gateway/iacm/api/orgs/{org}/projects/{project}/workspaces/{workspace}"

ModelT = TypeVar("ModelT", bound=BaseModel)


class PipelineExecutionGetter(Protocol):
    """The one call the poll loops need."""

    def get_pipeline_execution(
        self, org: str, project: str, execution_id: str, stage_node_id: str = ""
    ) -> PipelineExecutionDetail: ...


class JobClient(HTTPServiceClient):
    """Client for remote executions and pipeline execution status."""

    error_class = JobClientError

    def __init__(self, client: httpx.Client, account_id: str) -> None:
        super().__init__(client)
        self._account_id = account_id

    @classmethod
    def from_settings(
        cls, settings: IacctlSettings, *, transport: httpx.BaseTransport | None = None
    ) -> JobClient:
        client = build_http_client(
            settings.api_base_url,
            headers={
                API_KEY_HEADER: settings.api_key,
                ACCOUNT_HEADER: settings.account_id,
            },
            http=settings.http,
            transport=transport,
        )
        return cls(client, settings.account_id)

    def get_workspace(self, org: str, project: str, workspace: str) -> Workspace:
        path = _WORKSPACES.format(org=org, project=project, workspace=workspace)
        return self._model(Workspace, self._json("GET", path))

    def create_remote_execution(
        self,
        org: str,
        project: str,
        workspace: str,
        custom_arguments: Mapping[str, Sequence[str]] | None = None,
    ) -> RemoteExecution:
        path = _WORKSPACES.format(org=org, project=project, workspace=workspace)
        body = {"custom_arguments": {k: list(v) for k, v in (custom_arguments or {}).items()}}
        return self._model(
            RemoteExecution, self._json("POST", f"{path}/remote-executions", json=body)
        )

    def upload_remote_execution(
        self, org: str, project: str, workspace: str, execution_id: str, data: bytes
    ) -> RemoteExecution:
        path = _WORKSPACES.format(org=org, project=project, workspace=workspace)
        digest = hashlib.sha256(data).hexdigest()
        return self._model(
            RemoteExecution,
            self._json(
                "POST",
                f"{path}/remote-executions/{execution_id}/upload",
                content=data,
                headers={
                    "Content-Digest": f"sha256={digest}",
                    "Content-Type": "application/octet-stream",
                },
            ),
        )

    def execute_remote_execution(
        self, org: str, project: str, workspace: str, execution_id: str
    ) -> RemoteExecution:
        path = _WORKSPACES.format(org=org, project=project, workspace=workspace)
        return self._model(
            RemoteExecution,
            self._json("POST", f"{path}/remote-executions/{execution_id}/execute"),
        )

    def get_pipeline_execution(
        self, org: str, project: str, execution_id: str, stage_node_id: str = ""
    ) -> PipelineExecutionDetail:
        """Poll a pipeline execution.

        An empty stage_node_id returns the pipeline summary; a stage id also
        returns that stage's step graph.
        """
        payload = self._json(
            "GET",
            f"/pipeline/api/pipelines/execution/v2/{execution_id}",
            params={
                "accountIdentifier": self._account_id,
                "orgIdentifier": org,
                "projectIdentifier": project,
                "stageNodeId": stage_node_id,
                "renderFullBottomGraph": "true",
            },
        )
        data = payload.get("data") if isinstance(payload, dict) else None
        if data is None:
            return PipelineExecutionDetail()
        return self._model(PipelineExecutionDetail, data)

    def get_log_token(self) -> str:
        try:
            response = self._client.get(
                "/gateway/log-service/token",
                params={"accountID": self._account_id, "routingId": self._account_id},
            )
        except httpx.HTTPError as e:
            raise JobClientError(f"GET log token: {e}") from e
        if response.is_error:
            raise JobClientError(error_message(response), status_code=response.status_code)
        return response.text.strip()

    def _model(self, model: type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise JobClientError(f"unexpected {model.__name__} response: {e}") from e
