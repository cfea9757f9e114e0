"""Wire models for workspaces, remote executions, and pipeline execution graphs.

These are trust-boundary types: every response from the remote execution and
pipeline services is validated into one of these frozen models. The pipeline
service speaks camelCase, the workspace service speaks snake_case; both are
accepted by field name or alias.

Optional collections arrive as null about as often as they are omitted, so
they are normalised to empty containers on the way in.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _none_to_dict(value: Any) -> Any:
    return {} if value is None else value


IdList = Annotated[list[str], BeforeValidator(_none_to_list)]


class WireModel(BaseModel):
    """Base for response models: immutable, lenient about unknown fields."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class DefaultPipelineOverride(WireModel):
    """Pipeline chosen for one operation, at project and workspace level."""

    project_pipeline: str | None = None
    workspace_pipeline: str | None = None


class Workspace(WireModel):
    """Remote execution target."""

    account: str = ""
    org: str = ""
    project: str = ""
    identifier: str = ""
    repository_path: str = ""
    default_pipelines: Annotated[
        dict[str, DefaultPipelineOverride | None], BeforeValidator(_none_to_dict)
    ] = Field(default_factory=dict)


class RemoteExecution(WireModel):
    """Snapshot of a remote execution job.

    Every lifecycle call returns a new snapshot; never patch one locally.
    """

    id: str
    workspace: str = ""
    account: str = ""
    org: str = ""
    project: str = ""
    pipeline_execution_id: str = ""
    pipeline_execution_url: str = ""
    sha256_checksum: str = ""
    created: int = 0
    updated: int = 0
    custom_arguments: Annotated[
        dict[str, list[str]], BeforeValidator(_none_to_dict)
    ] = Field(default_factory=dict)


class EdgeLayoutList(WireModel):
    current_node_children: IdList = Field(default_factory=list, alias="currentNodeChildren")
    next_ids: IdList = Field(default_factory=list, alias="nextIds")


class GraphLayoutNode(WireModel):
    """A stage in the pipeline layout."""

    node_uuid: str = Field(default="", alias="nodeUuid")
    name: str = ""
    status: str = ""
    node_type: str = Field(default="", alias="nodeType")
    node_group: str = Field(default="", alias="nodeGroup")
    node_identifier: str = Field(default="", alias="nodeIdentifier")
    edge_layout_list: EdgeLayoutList | None = Field(default=None, alias="edgeLayoutList")

    @property
    def next_ids(self) -> list[str]:
        if self.edge_layout_list is None:
            return []
        return self.edge_layout_list.next_ids


class AsyncExecutableResponse(WireModel):
    log_keys: IdList = Field(default_factory=list, alias="logKeys")


class ExecutableResponse(WireModel):
    async_response: AsyncExecutableResponse | None = Field(default=None, alias="async")


class ExecutionNode(WireModel):
    """A step inside a stage's execution graph."""

    uuid: str = ""
    setup_id: str = Field(default="", alias="setupId")
    name: str = ""
    identifier: str = ""
    step_type: str = Field(default="", alias="stepType")
    status: str = ""
    log_base_key: str = Field(default="", alias="logBaseKey")
    executable_responses: Annotated[
        list[ExecutableResponse], BeforeValidator(_none_to_list)
    ] = Field(default_factory=list, alias="executableResponses")

    @property
    def log_key(self) -> str:
        """Key to fetch this step's logs with.

        A live execution response carries a just-in-time key that supersedes
        the static base key.
        """
        if self.executable_responses:
            response = self.executable_responses[0].async_response
            if response is not None and response.log_keys:
                return response.log_keys[0]
        return self.log_base_key


class ExecutionAdjacency(WireModel):
    children: IdList = Field(default_factory=list)
    next_ids: IdList = Field(default_factory=list, alias="nextIds")


class ExecutionGraph(WireModel):
    """Step-level DAG of one stage."""

    root_node_id: str = Field(default="", alias="rootNodeId")
    node_map: Annotated[dict[str, ExecutionNode], BeforeValidator(_none_to_dict)] = Field(
        default_factory=dict, alias="nodeMap"
    )
    node_adjacency_list_map: Annotated[
        dict[str, ExecutionAdjacency], BeforeValidator(_none_to_dict)
    ] = Field(default_factory=dict, alias="nodeAdjacencyListMap")


class PipelineExecutionSummary(WireModel):
    pipeline_identifier: str = Field(default="", alias="pipelineIdentifier")
    org_identifier: str = Field(default="", alias="orgIdentifier")
    project_identifier: str = Field(default="", alias="projectIdentifier")
    plan_execution_id: str = Field(default="", alias="planExecutionId")
    name: str = ""
    status: str = ""
    starting_node_id: str = Field(default="", alias="startingNodeId")
    layout_node_map: Annotated[
        dict[str, GraphLayoutNode], BeforeValidator(_none_to_dict)
    ] = Field(default_factory=dict, alias="layoutNodeMap")


class PipelineExecutionDetail(WireModel):
    """One poll of a pipeline execution.

    Either half may be missing while the server is still materialising the
    execution; that is "not ready yet", not an error.
    """

    pipeline_execution_summary: PipelineExecutionSummary | None = Field(
        default=None, alias="pipelineExecutionSummary"
    )
    execution_graph: ExecutionGraph | None = Field(default=None, alias="executionGraph")

    @property
    def is_ready(self) -> bool:
        return self.pipeline_execution_summary is not None and self.execution_graph is not None
