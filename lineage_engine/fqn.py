"""Parsing helpers for fully-qualified names and catalog resource names.

A fully-qualified name (FQN) has the form ``system:project.dataset.table``,
e.g. ``bigquery:sales-prod.orders.daily``.  Catalog resource names look like
``projects/<p>/locations/<l>/entryGroups/...``; lineage queries are scoped to
their first four segments.
"""

from __future__ import annotations

from dataclasses import dataclass

from lineage_engine.errors import MalformedIdentifierError

# Minimum number of ``.``-delimited segments after the system prefix
# (project + leaf).
MIN_PATH_SEGMENTS = 2

_SCOPE_SEGMENTS = 4


@dataclass(frozen=True)
class ParsedFqn:
    """A validated fully-qualified name split into its components."""

    fqn: str
    system: str
    project: str
    leaf: str


def parse_fqn(fqn: str) -> ParsedFqn:
    """Split *fqn* into system, project and leaf name.

    Raises
    ------
    MalformedIdentifierError
        If the system prefix is missing or the path has fewer than
        :data:`MIN_PATH_SEGMENTS` non-empty segments.
    """
    system, sep, path = fqn.partition(":")
    if not sep:
        raise MalformedIdentifierError(fqn, "missing ':' system separator")
    if not system:
        raise MalformedIdentifierError(fqn, "empty system prefix")

    segments = path.split(".")
    if len(segments) < MIN_PATH_SEGMENTS or not all(segments):
        raise MalformedIdentifierError(
            fqn,
            f"expected at least {MIN_PATH_SEGMENTS} '.'-delimited segments after the system prefix",
        )

    return ParsedFqn(fqn=fqn, system=system, project=segments[0], leaf=segments[-1])


def leaf_name(fqn: str) -> str:
    """Return the last ``.`` segment of *fqn* (the table name for BigQuery)."""
    return fqn.rsplit(".", 1)[-1]


def parent_scope(resource_name: str) -> str:
    """Return the ``projects/<p>/locations/<l>`` prefix of a resource name."""
    return "/".join(resource_name.split("/")[:_SCOPE_SEGMENTS])
