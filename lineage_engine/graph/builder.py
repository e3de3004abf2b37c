"""Baseline 1-hop lineage graph construction.

:func:`build_initial_graph` turns the anchor's search result into a graph
with the root in the middle, one ``asset -> query`` pair per upstream
producer on the left and one ``query -> asset`` pair per downstream consumer
on the right.  :func:`reset_graph` reruns the same algorithm on the raw
links cached in a snapshot, so a user can return to the baseline from any
expanded or column-filtered view without another network round-trip.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lineage_engine.graph.nodes import (
    ROOT_LEVEL,
    NodeIdAllocator,
    make_downstream_pair,
    make_root_node,
    make_upstream_pair,
)
from lineage_engine.models.graph import GraphModel, GraphView, LineageNode
from lineage_engine.models.links import AnchorEntry, LineageLink, LinkSearchResult

logger = logging.getLogger(__name__)

# Levels of the first hop on each side of the root.
FIRST_UPSTREAM_LEVEL = ROOT_LEVEL - 2
FIRST_DOWNSTREAM_LEVEL = ROOT_LEVEL + 2


def build_initial_graph(anchor: AnchorEntry, links: LinkSearchResult) -> GraphModel:
    """Build the baseline graph for *anchor* from its 1-hop search result.

    Parameters
    ----------
    anchor:
        The entry being inspected; becomes the root node.
    links:
        The anchor's search result.  ``target_links`` are upstream
        producers, ``source_links`` downstream consumers.

    Returns
    -------
    GraphModel
        A ``baseline`` snapshot with ``version == 0``.  Node order is
        upstream pairs, root, downstream pairs, each side in the order the
        service returned the links.
    """
    return _build(anchor, links.target_links, links.source_links)


def reset_graph(
    anchor: AnchorEntry,
    raw_upstream_links: Sequence[LineageLink],
    raw_downstream_links: Sequence[LineageLink],
) -> GraphModel:
    """Rebuild the baseline graph from cached raw links without any I/O.

    The result is equal to :func:`build_initial_graph` called with the same
    anchor and links.
    """
    logger.debug(
        "Resetting lineage graph for %s (%d upstream, %d downstream links)",
        anchor.fully_qualified_name,
        len(raw_upstream_links),
        len(raw_downstream_links),
    )
    return _build(anchor, raw_upstream_links, raw_downstream_links)


def _build(
    anchor: AnchorEntry,
    upstream_links: Sequence[LineageLink],
    downstream_links: Sequence[LineageLink],
) -> GraphModel:
    allocator = NodeIdAllocator()
    root = make_root_node(anchor, allocator)

    upstream_nodes: list[LineageNode] = []
    for index, link in enumerate(upstream_links):
        producer, query = make_upstream_pair(
            link,
            root,
            level=FIRST_UPSTREAM_LEVEL,
            sequence=index + 1,
            ordinal=index,
            allocator=allocator,
        )
        upstream_nodes.extend((producer, query))

    downstream_nodes: list[LineageNode] = []
    for index, link in enumerate(downstream_links):
        query, consumer = make_downstream_pair(
            link,
            root,
            level=FIRST_DOWNSTREAM_LEVEL,
            sequence=index + 1,
            ordinal=index,
            allocator=allocator,
        )
        downstream_nodes.extend((query, consumer))

    nodes = {node.id: node for node in [*upstream_nodes, root, *downstream_nodes]}

    logger.debug(
        "Built lineage graph for %s: %d nodes (%d upstream, %d downstream links)",
        anchor.fully_qualified_name,
        len(nodes),
        len(upstream_links),
        len(downstream_links),
    )

    return GraphModel(
        anchor=anchor,
        root_id=root.id,
        nodes=nodes,
        raw_upstream_links=list(upstream_links),
        raw_downstream_links=list(downstream_links),
        view=GraphView.BASELINE,
    )
