"""Wire payload builders and fakes shared by the test suites."""

from collections.abc import Iterable
from typing import Any

from iacctl.contracts import PipelineExecutionDetail


def stage(
    uuid: str,
    status: str,
    next_id: str | None = None,
    *,
    name: str | None = None,
    node_type: str = "IACM",
) -> dict[str, Any]:
    """Layout map entry as the pipeline service sends it."""
    return {
        "nodeUuid": uuid,
        "name": name or uuid,
        "status": status,
        "nodeType": node_type,
        "edgeLayoutList": {
            "currentNodeChildren": [],
            "nextIds": [next_id] if next_id else [],
        },
    }


def step(
    uuid: str,
    status: str,
    *,
    step_type: str = "Run",
    log_key: str | None = None,
) -> dict[str, Any]:
    """Execution graph node as the pipeline service sends it."""
    return {
        "uuid": uuid,
        "name": uuid,
        "identifier": uuid,
        "status": status,
        "stepType": step_type,
        "logBaseKey": log_key or f"logs/{uuid}",
    }


def detail_payload(
    *,
    stages: Iterable[dict[str, Any]] = (),
    steps: Iterable[dict[str, Any]] = (),
    adjacency: dict[str, dict[str, list[str]]] | None = None,
    root: str = "",
    starting_node_id: str = "",
    with_graph: bool = True,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "pipelineExecutionSummary": {
            "status": "Running",
            "startingNodeId": starting_node_id,
            "layoutNodeMap": {s["nodeUuid"]: s for s in stages},
        }
    }
    if with_graph:
        payload["executionGraph"] = {
            "rootNodeId": root,
            "nodeMap": {s["uuid"]: s for s in steps},
            "nodeAdjacencyListMap": adjacency or {},
        }
    return payload


def detail(**kwargs: Any) -> PipelineExecutionDetail:
    return PipelineExecutionDetail.model_validate(detail_payload(**kwargs))


class ScriptedPoller:
    """Pipeline execution getter that replays canned responses.

    Each call pops the next response for the requested stage scope; the
    last response repeats once the script runs out. A callable response is
    invoked instead (and may raise).
    """

    def __init__(self, script: dict[str, list[Any]]) -> None:
        self._script = {scope: list(responses) for scope, responses in script.items()}
        self.calls: list[tuple[str, str]] = []

    def get_pipeline_execution(
        self, org: str, project: str, execution_id: str, stage_node_id: str = ""
    ) -> PipelineExecutionDetail:
        self.calls.append((execution_id, stage_node_id))
        responses = self._script[stage_node_id]
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if callable(response):
            return response()
        return response
