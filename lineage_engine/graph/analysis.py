"""Structural checks and NetworkX views of a lineage graph snapshot.

:func:`to_digraph` exposes a :class:`~lineage_engine.models.graph.GraphModel`
as a ``networkx.DiGraph`` with edges following data flow
(``producer -> query -> consumer``), which rendering consumers and the
closure helpers below build on.
"""

from __future__ import annotations

import logging

import networkx as nx

from lineage_engine.errors import GraphInvariantError
from lineage_engine.models.graph import AssetNode, GraphModel, QueryNode

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def find_violations(graph: GraphModel) -> list[str]:
    """Return a description of every structural invariant *graph* breaks.

    Checked:

    1. exactly one node is the root, and it is ``graph.root_id``;
    2. every query node's source and target resolve to asset nodes;
    3. node ids are unique and match their mapping keys;
    4. a query node's level lies strictly between its endpoints' levels.
    """
    violations: list[str] = []

    roots = [node.id for node in graph.nodes.values() if node.is_root]
    if len(roots) != 1:
        violations.append(f"expected exactly one root node, found {len(roots)}")
    elif roots[0] != graph.root_id:
        violations.append(f"root node {roots[0]!r} does not match root_id {graph.root_id!r}")

    seen: set[str] = set()
    for mapping_id, node in graph.nodes.items():
        if node.id != mapping_id:
            violations.append(f"node {node.id!r} stored under id {mapping_id!r}")
        if node.id in seen:
            violations.append(f"duplicate node id {node.id!r}")
        seen.add(node.id)

    for query in graph.queries():
        source = graph.get(query.source_node_id)
        target = graph.get(query.target_node_id)
        if not isinstance(source, AssetNode):
            violations.append(f"query {query.id!r} has unknown source {query.source_node_id!r}")
        if not isinstance(target, AssetNode):
            violations.append(f"query {query.id!r} has unknown target {query.target_node_id!r}")
        if isinstance(source, AssetNode) and isinstance(target, AssetNode):
            low, high = sorted((source.level, target.level))
            if not low < query.level < high:
                violations.append(
                    f"query {query.id!r} at level {query.level} is not between "
                    f"{source.id!r} ({source.level}) and {target.id!r} ({target.level})"
                )

    return violations


def validate_graph(graph: GraphModel) -> None:
    """Raise :class:`GraphInvariantError` if *graph* is structurally invalid."""
    violations = find_violations(graph)
    if violations:
        logger.error("Lineage graph for %s is invalid: %s", graph.anchor.fully_qualified_name, violations)
        raise GraphInvariantError(violations)


# ---------------------------------------------------------------------------
# NetworkX view
# ---------------------------------------------------------------------------


def to_digraph(graph: GraphModel) -> nx.DiGraph:
    """Build a directed graph of *graph*'s nodes in data-flow order.

    Every node is added with its snapshot object under the ``"node"``
    attribute plus ``kind`` and ``level`` for convenience.  Each query
    node contributes two edges: ``source -> query`` and ``query -> target``.
    Dangling query endpoints are skipped.
    """
    digraph = nx.DiGraph()
    for node in graph.nodes.values():
        digraph.add_node(node.id, node=node, kind=node.kind.value, level=node.level)

    for query in graph.queries():
        if query.source_node_id in graph:
            digraph.add_edge(query.source_node_id, query.id)
        if query.target_node_id in graph:
            digraph.add_edge(query.id, query.target_node_id)

    return digraph


def upstream_of(graph: GraphModel, node_id: str, *, include_queries: bool = False) -> set[str]:
    """Return the ids of all nodes transitively upstream of *node_id*.

    Parameters
    ----------
    graph:
        The snapshot to traverse.
    node_id:
        Starting node; not included in the result.
    include_queries:
        When ``False`` (the default) only asset ids are returned.

    Raises
    ------
    NodeNotFoundError
        If *node_id* is not in *graph*.
    """
    graph.require(node_id)
    return _filter(graph, nx.ancestors(to_digraph(graph), node_id), include_queries)


def downstream_of(graph: GraphModel, node_id: str, *, include_queries: bool = False) -> set[str]:
    """Return the ids of all nodes transitively downstream of *node_id*.

    See :func:`upstream_of` for the parameters.
    """
    graph.require(node_id)
    return _filter(graph, nx.descendants(to_digraph(graph), node_id), include_queries)


def _filter(graph: GraphModel, node_ids: set[str], include_queries: bool) -> set[str]:
    if include_queries:
        return set(node_ids)
    return {node_id for node_id in node_ids if not isinstance(graph.nodes[node_id], QueryNode)}
