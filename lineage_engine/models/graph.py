"""Lineage graph snapshot model.

A :class:`GraphModel` is an immutable snapshot: every expansion, column
projection or reset produces a new instance via ``model_copy``.  Node order
in :attr:`GraphModel.nodes` is significant -- it is the hop order that
layout consumers rely on (upstream hops first, then the root, then
downstream hops).
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from lineage_engine.errors import NodeNotFoundError
from lineage_engine.models.links import AnchorEntry, Direction, LineageLink


class NodeKind(str, Enum):
    """Type of a node in the lineage graph."""

    ASSET = "asset"
    QUERY = "query"  # process/transformation between two assets


class HopDirection(str, Enum):
    """Which side of the root a node was reached from."""

    ROOT = "root"
    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"


class GraphView(str, Enum):
    """How the current snapshot was produced."""

    BASELINE = "baseline"  # 1-hop graph from the anchor search
    EXPANDED = "expanded"  # baseline plus incremental expansions
    COLUMN = "column"  # pruned column-level projection


class NodeKey(BaseModel):
    """Structured identity of a node, used for id allocation and dedup.

    Two nodes reached from different directions never share a key, so the
    same asset may legitimately appear twice in a graph.
    """

    model_config = ConfigDict(frozen=True)

    kind: NodeKind
    fully_qualified_name: str
    direction: HopDirection
    hop_index: int = Field(..., ge=0, description="Absolute level of the node.")
    parent_id: str | None = Field(
        default=None,
        description="Id of the asset this node was chained from.",
    )
    ordinal: int = Field(default=0, ge=0, description="Position within its expansion batch.")


class _NodeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    key: NodeKey
    display_name: str
    raw_link: LineageLink | None = None
    is_root: bool = False
    level: int = 0
    sequence: int = Field(default=1, ge=1)
    entry_details: dict[str, Any] = Field(default_factory=dict)


class AssetNode(_NodeBase):
    """A data asset (table, view, file set...)."""

    kind: Literal[NodeKind.ASSET] = NodeKind.ASSET
    fully_qualified_name: str
    upstream_expandable: bool = False
    downstream_expandable: bool = False
    upstream_fetched: bool = True
    downstream_fetched: bool = True

    def can_expand(self, direction: Direction) -> bool:
        """Whether a further hop may be requested in *direction*."""
        if direction is Direction.UPSTREAM:
            return self.upstream_expandable and not self.upstream_fetched
        if direction is Direction.DOWNSTREAM:
            return self.downstream_expandable and not self.downstream_fetched
        return False


class QueryNode(_NodeBase):
    """A process node linking ``source_node_id`` to ``target_node_id``."""

    kind: Literal[NodeKind.QUERY] = NodeKind.QUERY
    source_node_id: str
    target_node_id: str
    process: str | None = None


LineageNode = Annotated[AssetNode | QueryNode, Field(discriminator="kind")]


class ColumnScope(BaseModel):
    """Filter that produced a column-level view."""

    model_config = ConfigDict(frozen=True)

    column_name: str | None = None
    direction: Direction = Direction.BOTH


class GraphModel(BaseModel):
    """An immutable lineage graph snapshot for one anchor entry."""

    model_config = ConfigDict(frozen=True)

    anchor: AnchorEntry
    root_id: str
    nodes: dict[str, LineageNode] = Field(
        default_factory=dict,
        description="Ordered mapping of node id to node, in hop order.",
    )
    raw_upstream_links: list[LineageLink] = Field(
        default_factory=list,
        description="The anchor's targetLinks (upstream producers), kept for reset.",
    )
    raw_downstream_links: list[LineageLink] = Field(
        default_factory=list,
        description="The anchor's sourceLinks (downstream consumers), kept for reset.",
    )
    version: int = Field(default=0, ge=0, description="Commit counter stamped by the session.")
    epoch: int = Field(default=0, ge=0, description="Bumped whenever the view is replaced wholesale.")
    view: GraphView = GraphView.BASELINE
    column_scope: ColumnScope | None = None

    # -- Lookup ---------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    @property
    def root(self) -> AssetNode:
        root = self.nodes[self.root_id]
        assert isinstance(root, AssetNode)  # noqa: S101
        return root

    def get(self, node_id: str) -> AssetNode | QueryNode | None:
        return self.nodes.get(node_id)

    def require(self, node_id: str) -> AssetNode | QueryNode:
        """Return the node with *node_id* or raise :class:`NodeNotFoundError`."""
        try:
            return self.nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def assets(self) -> Iterator[AssetNode]:
        for node in self.nodes.values():
            if isinstance(node, AssetNode):
                yield node

    def queries(self) -> Iterator[QueryNode]:
        for node in self.nodes.values():
            if isinstance(node, QueryNode):
                yield node

    def nodes_at_level(self, level: int) -> list[AssetNode | QueryNode]:
        return [n for n in self.nodes.values() if n.level == level]

    # -- Serialisation --------------------------------------------------------

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready representation for rendering consumers."""
        return {
            "anchor": self.anchor.fully_qualified_name,
            "root_id": self.root_id,
            "version": self.version,
            "view": self.view.value,
            "column_scope": self.column_scope.model_dump(mode="json") if self.column_scope else None,
            "nodes": [node.model_dump(mode="json", exclude={"key", "raw_link"}) for node in self.nodes.values()],
        }
