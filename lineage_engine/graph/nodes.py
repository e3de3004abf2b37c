"""Node identity allocation and asset/query pair construction.

Every hop in a lineage graph is an ``asset -> query -> asset`` triple.  The
helpers here create the two new nodes of a hop (the neighbouring asset and
the query node joining it to an existing asset) and give them stable ids
derived from a :class:`~lineage_engine.models.graph.NodeKey`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from lineage_engine.fqn import leaf_name
from lineage_engine.models.graph import (
    AssetNode,
    HopDirection,
    LineageNode,
    NodeKey,
    NodeKind,
    QueryNode,
)
from lineage_engine.models.links import AnchorEntry, LineageLink

ROOT_LEVEL = 0


def format_node_id(key: NodeKey) -> str:
    """Render the base id string for *key*.

    The base id is not unique on its own (two producers of two different
    nodes may share an FQN and level); :class:`NodeIdAllocator` suffixes it
    on collision.
    """
    return f"{key.kind.value}:{key.direction.value}:{key.hop_index}:{key.fully_qualified_name}"


class NodeIdAllocator:
    """Hands out unique node ids while a new snapshot is being assembled.

    Seeded with the nodes of the snapshot being extended, so ids never
    collide with existing ones.
    """

    def __init__(self, existing: Mapping[str, LineageNode] | None = None) -> None:
        self._taken: set[str] = set(existing or ())

    def allocate(self, key: NodeKey) -> str:
        base = format_node_id(key)
        candidate = base
        suffix = 1
        while candidate in self._taken:
            suffix += 1
            candidate = f"{base}~{suffix}"
        self._taken.add(candidate)
        return candidate


def make_root_node(anchor: AnchorEntry, allocator: NodeIdAllocator) -> AssetNode:
    """Create the root asset for *anchor* (both affordances on, both fetched)."""
    key = NodeKey(
        kind=NodeKind.ASSET,
        fully_qualified_name=anchor.fully_qualified_name,
        direction=HopDirection.ROOT,
        hop_index=ROOT_LEVEL,
    )
    return AssetNode(
        id=allocator.allocate(key),
        key=key,
        display_name=anchor.display_name,
        fully_qualified_name=anchor.fully_qualified_name,
        is_root=True,
        level=ROOT_LEVEL,
        sequence=1,
        upstream_expandable=True,
        downstream_expandable=True,
        upstream_fetched=True,
        downstream_fetched=True,
        entry_details=dict(anchor.payload),
    )


def upstream_asset_key(link: LineageLink, consumer: AssetNode, *, level: int, ordinal: int) -> NodeKey:
    """Identity of the producer asset created for *link* next to *consumer*."""
    return NodeKey(
        kind=NodeKind.ASSET,
        fully_qualified_name=link.source.fully_qualified_name,
        direction=HopDirection.UPSTREAM,
        hop_index=abs(level),
        parent_id=consumer.id,
        ordinal=ordinal,
    )


def downstream_asset_key(link: LineageLink, producer: AssetNode, *, level: int, ordinal: int) -> NodeKey:
    """Identity of the consumer asset created for *link* next to *producer*."""
    return NodeKey(
        kind=NodeKind.ASSET,
        fully_qualified_name=link.target.fully_qualified_name,
        direction=HopDirection.DOWNSTREAM,
        hop_index=abs(level),
        parent_id=producer.id,
        ordinal=ordinal,
    )


def make_upstream_pair(
    link: LineageLink,
    consumer: AssetNode,
    *,
    level: int,
    sequence: int,
    ordinal: int,
    allocator: NodeIdAllocator,
    expandable: bool = True,
    entry_details: dict[str, Any] | None = None,
) -> tuple[AssetNode, QueryNode]:
    """Create a producer asset at *level* and the query node feeding *consumer*.

    The producer is ``link.source``.  The query node sits one level above
    the producer (between it and the consumer).
    """
    fqn = link.source.fully_qualified_name
    asset_key = upstream_asset_key(link, consumer, level=level, ordinal=ordinal)
    query_key = asset_key.model_copy(update={"kind": NodeKind.QUERY, "hop_index": abs(level + 1)})

    producer = AssetNode(
        id=allocator.allocate(asset_key),
        key=asset_key,
        display_name=leaf_name(fqn),
        fully_qualified_name=fqn,
        raw_link=link,
        level=level,
        sequence=sequence,
        upstream_expandable=expandable,
        upstream_fetched=not expandable,
        downstream_expandable=False,
        downstream_fetched=True,
        entry_details=entry_details or {},
    )
    query = QueryNode(
        id=allocator.allocate(query_key),
        key=query_key,
        display_name=f"query-{leaf_name(fqn)}",
        raw_link=link,
        level=level + 1,
        sequence=sequence,
        source_node_id=producer.id,
        target_node_id=consumer.id,
        process=link.process,
    )
    return producer, query


def make_downstream_pair(
    link: LineageLink,
    producer: AssetNode,
    *,
    level: int,
    sequence: int,
    ordinal: int,
    allocator: NodeIdAllocator,
    expandable: bool = True,
    entry_details: dict[str, Any] | None = None,
) -> tuple[QueryNode, AssetNode]:
    """Create the query node leaving *producer* and a consumer asset at *level*.

    The consumer is ``link.target``.  The query node sits one level below
    the consumer (between the producer and it).
    """
    fqn = link.target.fully_qualified_name
    asset_key = downstream_asset_key(link, producer, level=level, ordinal=ordinal)
    query_key = asset_key.model_copy(update={"kind": NodeKind.QUERY, "hop_index": abs(level - 1)})

    query_id = allocator.allocate(query_key)
    consumer = AssetNode(
        id=allocator.allocate(asset_key),
        key=asset_key,
        display_name=leaf_name(fqn),
        fully_qualified_name=fqn,
        raw_link=link,
        level=level,
        sequence=sequence,
        upstream_expandable=False,
        upstream_fetched=True,
        downstream_expandable=expandable,
        downstream_fetched=not expandable,
        entry_details=entry_details or {},
    )
    query = QueryNode(
        id=query_id,
        key=query_key,
        display_name=f"query-{leaf_name(fqn)}",
        raw_link=link,
        level=level - 1,
        sequence=sequence,
        source_node_id=producer.id,
        target_node_id=consumer.id,
        process=link.process,
    )
    return query, consumer
