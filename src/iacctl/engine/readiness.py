"""Bounded wait for a freshly triggered pipeline to start."""

from __future__ import annotations

import time

import structlog

from iacctl.clients.jobs import PipelineExecutionGetter
from iacctl.contracts import ExecutionStatus, ReadinessTimeoutError
from iacctl.core.cancel import CancelToken

logger = structlog.get_logger()


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


def wait_for_starting_node(
    client: PipelineExecutionGetter,
    org: str,
    project: str,
    execution_id: str,
    cancel: CancelToken,
    *,
    interval: float = 0.5,
    timeout: float = 5.0,
) -> str:
    """Poll until the pipeline's starting stage is Running.

    The first poll happens one interval after the call. Responses without a
    summary, starting node id, or layout entry for it are skipped.

    Returns:
        The starting node id

    Raises:
        ReadinessTimeoutError: If the starting stage isn't Running by `timeout`
        OperationCancelled: If `cancel` fires first
        JobClientError: Propagated unchanged from the poll
    """
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if cancel.wait(min(interval, max(remaining, 0.0))):
            cancel.raise_if_cancelled()
        if time.monotonic() >= deadline:
            raise ReadinessTimeoutError(
                f"The pipeline execution was not started after {_format_seconds(timeout)} seconds"
            )

        detail = client.get_pipeline_execution(org, project, execution_id, "")
        summary = detail.pipeline_execution_summary
        if summary is None or not summary.starting_node_id:
            continue
        node = summary.layout_node_map.get(summary.starting_node_id)
        if node is None:
            continue
        if node.status == ExecutionStatus.RUNNING:
            return summary.starting_node_id
        logger.debug(
            "Waiting for pipeline to start",
            execution_id=execution_id,
            status=node.status,
        )
