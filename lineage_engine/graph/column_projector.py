"""Column-level lineage projection.

Builds a separate, pruned :class:`~lineage_engine.models.graph.GraphModel`
containing the root plus every hop whose relevant entry declares the
requested column in its schema.  The full graph is never touched, so the
column view can be abandoned at any time (see
:func:`~lineage_engine.graph.builder.reset_graph`).

Schema membership is read from the entry's schema aspect::

    entry["aspects"]["<entry type id>.global.schema"]
        ["data"]["fields"]["fields"]["listValue"]["values"][i]
        ["structValue"]["fields"]["name"]["stringValue"]

where ``<entry type id>`` is the second ``/`` segment of
``entry["entryType"]``.  An entry without that aspect simply does not
match; its children are still evaluated.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from typing import Any

from lineage_engine.client.base import LineageLinkFetcher
from lineage_engine.config import DEFAULT_SCHEMA_ASPECT_SUFFIX
from lineage_engine.errors import LineageTransportError
from lineage_engine.graph.link_tree import build_link_tree, walk_link_tree
from lineage_engine.graph.nodes import (
    NodeIdAllocator,
    make_downstream_pair,
    make_root_node,
    make_upstream_pair,
)
from lineage_engine.models.graph import AssetNode, ColumnScope, GraphModel, GraphView, LineageNode
from lineage_engine.models.links import (
    AnchorEntry,
    ColumnLineageLink,
    ColumnLinkSearchResult,
    Direction,
    LineageLink,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schema lookup
# ---------------------------------------------------------------------------


def schema_field_names(
    entry: dict[str, Any] | None,
    aspect_suffix: str = DEFAULT_SCHEMA_ASPECT_SUFFIX,
) -> list[str] | None:
    """Return the column names declared in *entry*'s schema aspect.

    Returns ``None`` when the entry, its type id or its schema aspect is
    missing or not shaped as expected.
    """
    if not entry:
        return None
    entry_type = entry.get("entryType")
    if not isinstance(entry_type, str):
        return None
    type_segments = entry_type.split("/")
    if len(type_segments) < 2 or not type_segments[1]:
        return None

    aspect = (entry.get("aspects") or {}).get(f"{type_segments[1]}.{aspect_suffix}")
    try:
        values = aspect["data"]["fields"]["fields"]["listValue"]["values"]
    except (KeyError, TypeError):
        return None
    if not isinstance(values, list):
        return None

    names: list[str] = []
    for value in values:
        try:
            names.append(value["structValue"]["fields"]["name"]["stringValue"])
        except (KeyError, TypeError):
            continue
    return names


def entry_has_column(
    entry: dict[str, Any] | None,
    column_name: str,
    aspect_suffix: str = DEFAULT_SCHEMA_ASPECT_SUFFIX,
) -> bool:
    names = schema_field_names(entry, aspect_suffix)
    return names is not None and column_name in names


# ---------------------------------------------------------------------------
# Tree walk
# ---------------------------------------------------------------------------


class _ColumnHopCollector:
    """Emits an asset/query pair for every link whose entry has the column.

    The walk context is the nearest emitted ancestor asset: a matching
    link chains to it, a non-matching link passes it through unchanged so
    its matching descendants still connect to the graph.
    """

    def __init__(
        self,
        side: Direction,
        column_name: str | None,
        allocator: NodeIdAllocator,
        aspect_suffix: str,
    ) -> None:
        self.side = side
        self.column_name = column_name
        self.aspect_suffix = aspect_suffix
        self.nodes: list[LineageNode] = []
        self._allocator = allocator
        self._sequence_at_level: Counter[int] = Counter()
        self._ordinal = 0

    def _matches(self, link: ColumnLineageLink) -> bool:
        if not self.column_name:
            return True
        entry = link.source_entry if self.side is Direction.UPSTREAM else link.target_entry
        return entry_has_column(entry, self.column_name, self.aspect_suffix)

    def visit(self, link: ColumnLineageLink, depth: int, context: AssetNode) -> AssetNode:
        if not self._matches(link):
            return context

        hop = 2 * (depth + 1)
        level = -hop if self.side is Direction.UPSTREAM else hop
        self._sequence_at_level[level] += 1
        sequence = self._sequence_at_level[level]
        ordinal = self._ordinal
        self._ordinal += 1

        if self.side is Direction.UPSTREAM:
            asset, query = make_upstream_pair(
                link,
                context,
                level=level,
                sequence=sequence,
                ordinal=ordinal,
                allocator=self._allocator,
                expandable=False,
                entry_details=link.source_entry,
            )
            self.nodes.extend((asset, query))
        else:
            query, asset = make_downstream_pair(
                link,
                context,
                level=level,
                sequence=sequence,
                ordinal=ordinal,
                allocator=self._allocator,
                expandable=False,
                entry_details=link.target_entry,
            )
            self.nodes.extend((query, asset))
        return asset


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def project_column_lineage(
    anchor: AnchorEntry,
    column_name: str | None,
    direction: Direction,
    links: ColumnLinkSearchResult,
    *,
    raw_upstream_links: Sequence[LineageLink] = (),
    raw_downstream_links: Sequence[LineageLink] = (),
    aspect_suffix: str = DEFAULT_SCHEMA_ASPECT_SUFFIX,
) -> GraphModel:
    """Build a column-scoped lineage graph from pre-resolved link trees.

    Parameters
    ----------
    anchor:
        The entry being inspected; becomes the root.
    column_name:
        Column to filter on.  ``None`` or ``""`` keeps every hop.
    direction:
        Which sides to walk: ``UPSTREAM`` walks ``links.target_links``
        (checked against each link's ``source_entry``), ``DOWNSTREAM`` walks
        ``links.source_links`` (checked against ``target_entry``), ``BOTH``
        walks both.
    links:
        The column-level search result.
    raw_upstream_links, raw_downstream_links:
        Baseline 1-hop links carried into the result so the view can be
        reset without another fetch.

    Returns
    -------
    GraphModel
        A ``column`` view snapshot.  Every node's expand affordances are
        off.  Hop depth d places an asset at level ``∓2(d+1)``.
    """
    allocator = NodeIdAllocator()
    root = make_root_node(anchor, allocator)
    root = root.model_copy(
        update={"upstream_expandable": False, "downstream_expandable": False},
    )

    upstream = _ColumnHopCollector(Direction.UPSTREAM, column_name, allocator, aspect_suffix)
    if direction.includes_upstream():
        for link in links.target_links:
            walk_link_tree(build_link_tree(link), upstream, root)

    downstream = _ColumnHopCollector(Direction.DOWNSTREAM, column_name, allocator, aspect_suffix)
    if direction.includes_downstream():
        for link in links.source_links:
            walk_link_tree(build_link_tree(link), downstream, root)

    nodes = {node.id: node for node in [*upstream.nodes, root, *downstream.nodes]}

    logger.info(
        "Column lineage for %s (column=%r, direction=%s): %d nodes",
        anchor.fully_qualified_name,
        column_name or "",
        direction.value,
        len(nodes),
    )

    return GraphModel(
        anchor=anchor,
        root_id=root.id,
        nodes=nodes,
        raw_upstream_links=list(raw_upstream_links),
        raw_downstream_links=list(raw_downstream_links),
        view=GraphView.COLUMN,
        column_scope=ColumnScope(column_name=column_name or None, direction=direction),
    )


async def project_columns(
    graph: GraphModel,
    column_name: str | None,
    direction: Direction,
    fetcher: LineageLinkFetcher,
    *,
    aspect_suffix: str = DEFAULT_SCHEMA_ASPECT_SUFFIX,
) -> GraphModel:
    """Fetch column-level links for *graph*'s anchor and project them.

    On transport failure *graph* is returned unchanged.
    """
    anchor = graph.anchor
    try:
        links = await fetcher.search_column_links(anchor.parent_scope, anchor.fully_qualified_name, direction)
    except LineageTransportError as exc:
        logger.warning(
            "Column lineage request for %s failed; graph left unchanged: %s",
            anchor.fully_qualified_name,
            exc,
        )
        return graph
    return project_column_lineage(
        anchor,
        column_name,
        direction,
        links,
        raw_upstream_links=graph.raw_upstream_links,
        raw_downstream_links=graph.raw_downstream_links,
        aspect_suffix=aspect_suffix,
    )
