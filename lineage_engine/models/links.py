"""Wire models for raw lineage links returned by the lineage API.

The search service names its two result lists from the point of view of the
queried FQN: ``sourceLinks`` are edges where the FQN is the *source* (its
downstream consumers) and ``targetLinks`` are edges where the FQN is the
*target* (its upstream producers).  The names are kept exactly as the
service returns them.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lineage_engine.fqn import leaf_name, parent_scope


class Direction(str, Enum):
    """Lineage direction relative to the anchor (or the node being expanded)."""

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    BOTH = "both"

    def includes_upstream(self) -> bool:
        return self in (Direction.UPSTREAM, Direction.BOTH)

    def includes_downstream(self) -> bool:
        return self in (Direction.DOWNSTREAM, Direction.BOTH)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class EntityReference(_WireModel):
    """One end of a lineage link."""

    fully_qualified_name: str = Field(..., alias="fullyQualifiedName")


class LineageLink(_WireModel):
    """A single producer -> consumer edge."""

    name: str = Field(
        default="",
        description="Link resource name, e.g. 'projects/p/locations/us/links/abc'.",
    )
    source: EntityReference
    target: EntityReference
    process: str | None = Field(
        default=None,
        description="Resource name of the process that produced the link, if known.",
    )

    @property
    def parent_scope(self) -> str:
        return parent_scope(self.name)


class ColumnLineageLink(LineageLink):
    """A lineage link from the column-level service, with resolved sub-hops."""

    children: list[ColumnLineageLink] = Field(default_factory=list)
    source_entry: dict[str, Any] | None = Field(default=None, alias="sourceEntry")
    target_entry: dict[str, Any] | None = Field(default=None, alias="targetEntry")


class LinkSearchResult(_WireModel):
    """Response of the 1-hop lineage search for one FQN."""

    source_links: list[LineageLink] = Field(default_factory=list, alias="sourceLinks")
    target_links: list[LineageLink] = Field(default_factory=list, alias="targetLinks")

    @property
    def is_empty(self) -> bool:
        return not self.source_links and not self.target_links


class ColumnLinkSearchResult(_WireModel):
    """Response of the column-level lineage search (multi-hop link trees)."""

    source_links: list[ColumnLineageLink] = Field(default_factory=list, alias="sourceLinks")
    target_links: list[ColumnLineageLink] = Field(default_factory=list, alias="targetLinks")


class AnchorEntry(_WireModel):
    """The catalog entry whose lineage is being displayed."""

    name: str = Field(..., description="Catalog resource name of the entry.")
    fully_qualified_name: str = Field(..., alias="fullyQualifiedName")
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Full entry payload as returned by the catalog, if available.",
    )

    @property
    def parent_scope(self) -> str:
        return parent_scope(self.name)

    @property
    def display_name(self) -> str:
        return leaf_name(self.fully_qualified_name)

    @classmethod
    def from_entry(cls, entry: dict[str, Any]) -> AnchorEntry:
        """Build an anchor from a raw catalog entry payload."""
        return cls(
            name=entry["name"],
            fully_qualified_name=entry["fullyQualifiedName"],
            payload=entry,
        )
