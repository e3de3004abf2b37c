"""Pydantic models for lineage links, graph snapshots and list rows."""

from lineage_engine.models.graph import (
    AssetNode,
    ColumnScope,
    GraphModel,
    GraphView,
    HopDirection,
    LineageNode,
    NodeKey,
    NodeKind,
    QueryNode,
)
from lineage_engine.models.links import (
    AnchorEntry,
    ColumnLineageLink,
    ColumnLinkSearchResult,
    Direction,
    EntityReference,
    LineageLink,
    LinkSearchResult,
)
from lineage_engine.models.rows import LineageRow, MalformedIdentifier, RowProjection

__all__ = [
    # Links
    "AnchorEntry",
    "ColumnLineageLink",
    "ColumnLinkSearchResult",
    "Direction",
    "EntityReference",
    "LineageLink",
    "LinkSearchResult",
    # Graph
    "AssetNode",
    "ColumnScope",
    "GraphModel",
    "GraphView",
    "HopDirection",
    "LineageNode",
    "NodeKey",
    "NodeKind",
    "QueryNode",
    # Rows
    "LineageRow",
    "MalformedIdentifier",
    "RowProjection",
]
