"""Incremental one-hop expansion of a lineage graph.

Expanding a node upstream asks the lineage service for the node's own
producers and chains a new ``asset -> query`` pair onto it for each one;
expanding downstream does the same for consumers.  New upstream nodes are
prepended to the node mapping and new downstream nodes appended, so the
mapping stays in hop order for layout.

:func:`apply_expansion` is pure: it builds the new node mapping in a scratch
dict and returns a new snapshot, leaving the input untouched.  The async
:func:`expand_upstream` / :func:`expand_downstream` wrappers add the fetch
and turn transport failures into a no-op.
"""

from __future__ import annotations

import logging

from lineage_engine.client.base import LineageLinkFetcher
from lineage_engine.errors import LineageTransportError
from lineage_engine.graph.nodes import (
    NodeIdAllocator,
    make_downstream_pair,
    make_upstream_pair,
)
from lineage_engine.models.graph import AssetNode, GraphModel, GraphView, LineageNode
from lineage_engine.models.links import Direction, LinkSearchResult

logger = logging.getLogger(__name__)

_HOP = 2


def _check_direction(direction: Direction) -> None:
    if direction is Direction.BOTH:
        raise ValueError("Expansion direction must be UPSTREAM or DOWNSTREAM")


def expandable_asset(graph: GraphModel, node_id: str, direction: Direction) -> AssetNode | None:
    """Return the asset behind *node_id* if it may be expanded in *direction*.

    Raises
    ------
    NodeNotFoundError
        If *node_id* is not in *graph*.
    """
    _check_direction(direction)
    node = graph.require(node_id)
    if not isinstance(node, AssetNode):
        logger.debug("Node %s is a query node; nothing to expand", node_id)
        return None
    if not node.can_expand(direction):
        logger.debug("Node %s is not expandable %s", node_id, direction.value)
        return None
    return node


def expansion_scope(graph: GraphModel, node: AssetNode) -> str:
    """Lineage scope for a query about *node*.

    Nodes created from a link are scoped by the link's resource name; the
    root (and any node without a usable link name) uses the anchor's scope.
    """
    if node.raw_link is not None and node.raw_link.name:
        return node.raw_link.parent_scope
    return graph.anchor.parent_scope


async def fetch_expansion_links(
    graph: GraphModel,
    node: AssetNode,
    fetcher: LineageLinkFetcher,
) -> LinkSearchResult:
    """Ask *fetcher* for the links one hop beyond *node*."""
    return await fetcher.search_links(expansion_scope(graph, node), node.fully_qualified_name)


def apply_expansion(
    graph: GraphModel,
    node_id: str,
    direction: Direction,
    links: LinkSearchResult,
) -> GraphModel:
    """Splice the links of a one-hop search around *node_id* into *graph*.

    Parameters
    ----------
    graph:
        The snapshot to extend.  It is never mutated.
    node_id:
        The asset being expanded.
    direction:
        ``UPSTREAM`` consumes ``links.target_links`` (producers),
        ``DOWNSTREAM`` consumes ``links.source_links`` (consumers).
    links:
        The search result for the node's FQN.

    Returns
    -------
    GraphModel
        A new snapshot.  If the node may not be expanded, *graph* itself.
        If the relevant link list is empty the node's affordance is cleared
        and no nodes are added.
    """
    node = expandable_asset(graph, node_id, direction)
    if node is None:
        return graph

    neighbours = links.target_links if direction is Direction.UPSTREAM else links.source_links
    if not neighbours:
        logger.info(
            "No further %s lineage for %s; clearing expand affordance",
            direction.value,
            node.fully_qualified_name,
        )
        return _replace_node(graph, _mark_fetched(node, direction, exhausted=True))

    allocator = NodeIdAllocator(graph.nodes)
    added: list[LineageNode] = []

    for index, link in enumerate(neighbours):
        if direction is Direction.UPSTREAM:
            level = node.level - _HOP
            neighbour = link.source.fully_qualified_name
        else:
            level = node.level + _HOP
            neighbour = link.target.fully_qualified_name

        # A self-loop neighbour is shown once but never expanded again.
        expandable = neighbour != node.fully_qualified_name
        factory = make_upstream_pair if direction is Direction.UPSTREAM else make_downstream_pair
        added.extend(
            factory(
                link,
                node,
                level=level,
                sequence=index + 1,
                ordinal=index,
                allocator=allocator,
                expandable=expandable,
            )
        )

    scratch: dict[str, LineageNode] = {}
    updated = _mark_fetched(node, direction, exhausted=False)
    existing = [updated if n.id == node.id else n for n in graph.nodes.values()]
    ordered = [*added, *existing] if direction is Direction.UPSTREAM else [*existing, *added]
    for entry in ordered:
        scratch[entry.id] = entry

    logger.info(
        "Expanded %s %s: %d new nodes",
        node.fully_qualified_name,
        direction.value,
        len(added),
    )
    return graph.model_copy(update={"nodes": scratch, "view": GraphView.EXPANDED})


async def expand_upstream(graph: GraphModel, node_id: str, fetcher: LineageLinkFetcher) -> GraphModel:
    """Grow *graph* by one producer hop from *node_id*."""
    return await _expand(graph, node_id, Direction.UPSTREAM, fetcher)


async def expand_downstream(graph: GraphModel, node_id: str, fetcher: LineageLinkFetcher) -> GraphModel:
    """Grow *graph* by one consumer hop from *node_id*."""
    return await _expand(graph, node_id, Direction.DOWNSTREAM, fetcher)


async def _expand(
    graph: GraphModel,
    node_id: str,
    direction: Direction,
    fetcher: LineageLinkFetcher,
) -> GraphModel:
    node = expandable_asset(graph, node_id, direction)
    if node is None:
        return graph
    try:
        links = await fetch_expansion_links(graph, node, fetcher)
    except LineageTransportError as exc:
        logger.warning(
            "%s expansion of %s failed; graph left unchanged: %s",
            direction.value.capitalize(),
            node.fully_qualified_name,
            exc,
        )
        return graph
    return apply_expansion(graph, node_id, direction, links)


def _mark_fetched(node: AssetNode, direction: Direction, *, exhausted: bool) -> AssetNode:
    if direction is Direction.UPSTREAM:
        update = {"upstream_fetched": True}
        if exhausted:
            update["upstream_expandable"] = False
    else:
        update = {"downstream_fetched": True}
        if exhausted:
            update["downstream_expandable"] = False
    return node.model_copy(update=update)


def _replace_node(graph: GraphModel, node: AssetNode) -> GraphModel:
    nodes = {node_id: (node if node_id == node.id else existing) for node_id, existing in graph.nodes.items()}
    return graph.model_copy(update={"nodes": nodes})
