"""Pure lookups over the polled pipeline structures.

Stages form a chain in the layout map (only the first next id is followed).
Steps form a DAG in the execution graph and are searched depth-first,
children before next ids. Neither structure is trusted to be acyclic.

Nothing here mutates its inputs or touches the network; the walkers own
the cursors and visited sets and pass them in.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Set

import networkx as nx
from networkx import DiGraph

from iacctl.contracts import (
    ExecutionGraph,
    ExecutionNode,
    GraphLayoutNode,
    is_active_status,
    is_ignored_type,
)


def next_active_stage(
    layout_map: Mapping[str, GraphLayoutNode],
    cursor: str,
    visited: Set[str] = frozenset(),
) -> GraphLayoutNode | None:
    """Find the stage to walk next, starting at `cursor`.

    Returns the first node along the next-id chain that is active, not an
    internal wrapper and not yet visited. Returns None when the chain ends,
    leaves the layout map, or loops back on itself.
    """
    seen: set[str] = set()
    node_id = cursor
    while node_id and node_id not in seen:
        seen.add(node_id)
        node = layout_map.get(node_id)
        if node is None:
            return None
        if (
            is_active_status(node.status)
            and not is_ignored_type(node.node_type)
            and node_id not in visited
        ):
            if not node.node_uuid:
                node = node.model_copy(update={"node_uuid": node_id})
            return node
        next_ids = node.next_ids
        if not next_ids:
            return None
        node_id = next_ids[0]
    return None


def build_step_graph(graph: ExecutionGraph) -> DiGraph:
    """Directed graph of the steps, successors ordered children first."""
    digraph: DiGraph = nx.DiGraph()
    digraph.add_nodes_from(graph.node_map)
    for node_id, adjacency in graph.node_adjacency_list_map.items():
        digraph.add_node(node_id)
        for child in adjacency.children:
            digraph.add_edge(node_id, child)
        for next_id in adjacency.next_ids:
            digraph.add_edge(node_id, next_id)
    return digraph


def iter_steps(graph: ExecutionGraph, cursor: str) -> Iterator[ExecutionNode]:
    """Yield steps in depth-first preorder from `cursor` (or the root).

    The cursor itself comes first. Ids present only in the adjacency map
    are walked through but not yielded. A step without a uuid takes its
    node map key.
    """
    start = cursor or graph.root_node_id
    if not start:
        return
    digraph = build_step_graph(graph)
    if start not in digraph:
        return
    for node_id in nx.dfs_preorder_nodes(digraph, source=start):
        node = graph.node_map.get(node_id)
        if node is None:
            continue
        if not node.uuid:
            node = node.model_copy(update={"uuid": node_id})
        yield node


def next_matching_step(
    graph: ExecutionGraph,
    cursor: str,
    visited: Set[str],
    predicate: Callable[[ExecutionNode], bool],
) -> ExecutionNode | None:
    for node in iter_steps(graph, cursor):
        if node.uuid in visited or is_ignored_type(node.step_type):
            continue
        if predicate(node):
            return node
    return None


def next_active_step(
    graph: ExecutionGraph, cursor: str, visited: Set[str] = frozenset()
) -> ExecutionNode | None:
    """First active, unvisited, user-facing step reachable from `cursor`."""
    return next_matching_step(graph, cursor, visited, lambda n: is_active_status(n.status))


def next_inactive_step(
    graph: ExecutionGraph, cursor: str, visited: Set[str] = frozenset()
) -> ExecutionNode | None:
    """First unvisited, user-facing step reachable from `cursor`, any status.

    Used once the stage is terminal to drain the steps not yet reported.
    """
    return next_matching_step(graph, cursor, visited, lambda n: True)
