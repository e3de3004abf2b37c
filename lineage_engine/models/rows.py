"""Row records for the tabular lineage view."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LineageRow(BaseModel):
    """One producer -> consumer edge flattened for a table.

    Serialises with the camelCase keys the list view consumes
    (``sourceSystem``, ``sourceFQN`` ...); use ``model_dump(by_alias=True)``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    source_system: str = Field(..., alias="sourceSystem")
    source_project: str = Field(..., alias="sourceProject")
    source: str
    source_fqn: str = Field(..., alias="sourceFQN")
    target_system: str = Field(default="", alias="targetSystem")
    target_project: str = Field(default="", alias="targetProject")
    target: str = ""
    target_fqn: str = Field(default="", alias="targetFQN")


class MalformedIdentifier(BaseModel):
    """A link that was skipped because one of its FQNs could not be parsed."""

    model_config = ConfigDict(frozen=True)

    fqn: str
    reason: str
    link_name: str = ""


class RowProjection(BaseModel):
    """Result of flattening link lists: the rows plus anything skipped."""

    model_config = ConfigDict(frozen=True)

    rows: list[LineageRow] = Field(default_factory=list)
    skipped: list[MalformedIdentifier] = Field(default_factory=list)
