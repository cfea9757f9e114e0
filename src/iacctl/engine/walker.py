"""Stage and step poll loops.

The stage loop follows the pipeline's stage chain and hands each newly
active stage to the step loop, which runs to completion before the next
stage is considered. Cursors and visited sets are the only state kept
between ticks; every tick works on a fresh snapshot.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
import typer

from iacctl.clients.jobs import PipelineExecutionGetter
from iacctl.contracts import is_active_status, is_terminal_status
from iacctl.core.cancel import CancelToken
from iacctl.engine.log_attach import LogAttacher
from iacctl.engine.traversal import next_active_stage, next_active_step, next_inactive_step

STAGE_BANNER = "========================== Starting stage %s =========================="

logger = structlog.get_logger()


class ExecutionWalker:
    """Walks a pipeline execution, attaching logs to every step once.

    Args:
        client: Pipeline execution poller
        attacher: Starts per-step log tasks
        org: Organisation identifier
        project: Project identifier
        cancel: Run-wide cancel token
        stage_interval: Seconds between stage polls
        step_interval: Seconds between step polls
        echo: Output sink for stage banners
    """

    def __init__(
        self,
        client: PipelineExecutionGetter,
        attacher: LogAttacher,
        org: str,
        project: str,
        cancel: CancelToken,
        *,
        stage_interval: float = 3.0,
        step_interval: float = 1.0,
        echo: Callable[[str], None] = typer.echo,
    ) -> None:
        self._client = client
        self._attacher = attacher
        self._org = org
        self._project = project
        self._cancel = cancel
        self._stage_interval = stage_interval
        self._step_interval = step_interval
        self._echo = echo
        self.visited_stages: set[str] = set()

    def walk(self, execution_id: str, starting_node_id: str) -> None:
        """Run the stage loop until no active stage remains.

        Raises:
            OperationCancelled: If the cancel token fires
            JobClientError: If a poll fails
        """
        cursor = starting_node_id
        while True:
            if self._cancel.wait(self._stage_interval):
                self._cancel.raise_if_cancelled()

            detail = self._client.get_pipeline_execution(self._org, self._project, execution_id)
            summary = detail.pipeline_execution_summary
            if summary is None or detail.execution_graph is None:
                continue

            stage = next_active_stage(summary.layout_node_map, cursor, self.visited_stages)
            if stage is None:
                logger.debug("No active stage left", execution_id=execution_id, cursor=cursor)
                return

            self.visited_stages.add(stage.node_uuid)
            cursor = stage.node_uuid
            self._echo(STAGE_BANNER % stage.name)
            self.walk_stage(execution_id, stage.node_uuid)

    def walk_stage(self, execution_id: str, stage_id: str) -> set[str]:
        """Run the step loop for one stage until it is terminal and drained.

        Returns:
            Ids of the steps that got a log task
        """
        visited: set[str] = set()
        cursor = ""
        while True:
            if self._cancel.wait(self._step_interval):
                self._cancel.raise_if_cancelled()

            detail = self._client.get_pipeline_execution(
                self._org, self._project, execution_id, stage_id
            )
            summary = detail.pipeline_execution_summary
            graph = detail.execution_graph
            if summary is None or graph is None:
                continue

            stage = summary.layout_node_map.get(stage_id)
            status = stage.status if stage is not None else ""

            if is_active_status(status):
                find, live = next_active_step, True
            elif is_terminal_status(status):
                find, live = next_inactive_step, False
            else:
                logger.debug("Stage in unhandled status", stage=stage_id, status=status)
                continue

            step = find(graph, cursor, visited)
            if step is None and cursor:
                # Nothing new below the cursor; rescan from the root
                step = find(graph, "", visited)
            if step is None:
                if live:
                    continue
                return visited

            visited.add(step.uuid)
            cursor = step.uuid
            self._attacher.attach(step, live=live)
