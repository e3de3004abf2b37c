"""Flatten raw lineage links into rows for the tabular lineage view.

Row order follows the search response: upstream producers
(``target_links``) first, then downstream consumers (``source_links``).
Row ids count up from 0 across both lists.  When both lists are empty a
single placeholder row describing the anchor itself is produced so the
table is never blank.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lineage_engine.errors import MalformedIdentifierError
from lineage_engine.fqn import leaf_name, parse_fqn
from lineage_engine.models.links import AnchorEntry, LineageLink
from lineage_engine.models.rows import LineageRow, MalformedIdentifier, RowProjection

logger = logging.getLogger(__name__)


def project_rows(
    source_links: Sequence[LineageLink],
    target_links: Sequence[LineageLink],
    *,
    anchor: AnchorEntry | None = None,
) -> RowProjection:
    """Convert link lists into :class:`LineageRow` records.

    Parameters
    ----------
    source_links:
        Links where the anchor is the source (downstream consumers).
    target_links:
        Links where the anchor is the target (upstream producers).
    anchor:
        Entry described by the placeholder row when both lists are empty.
        Without an anchor, empty input yields no rows.

    Returns
    -------
    RowProjection
        The rows, plus one :class:`MalformedIdentifier` per link dropped
        because one of its FQNs could not be parsed.
    """
    rows: list[LineageRow] = []
    skipped: list[MalformedIdentifier] = []
    next_id = 0

    for link in [*target_links, *source_links]:
        try:
            source = parse_fqn(link.source.fully_qualified_name)
            target = parse_fqn(link.target.fully_qualified_name)
        except MalformedIdentifierError as exc:
            logger.warning("Skipping lineage link %s: %s", link.name or "<unnamed>", exc)
            skipped.append(MalformedIdentifier(fqn=exc.fqn, reason=exc.reason, link_name=link.name))
            continue

        rows.append(
            LineageRow(
                id=next_id,
                source_system=source.system,
                source_project=source.project,
                source=source.leaf,
                source_fqn=source.fqn,
                target_system=target.system,
                target_project=target.project,
                target=target.leaf,
                target_fqn=target.fqn,
            )
        )
        next_id += 1

    if not target_links and not source_links and anchor is not None:
        rows.append(_placeholder_row(anchor, next_id))

    return RowProjection(rows=rows, skipped=skipped)


def to_rows(
    source_links: Sequence[LineageLink],
    target_links: Sequence[LineageLink],
    *,
    anchor: AnchorEntry | None = None,
) -> list[LineageRow]:
    """Shorthand for ``project_rows(...).rows``."""
    return project_rows(source_links, target_links, anchor=anchor).rows


def _placeholder_row(anchor: AnchorEntry, row_id: int) -> LineageRow:
    fqn = anchor.fully_qualified_name
    try:
        parsed = parse_fqn(fqn)
        system, project, leaf = parsed.system, parsed.project, parsed.leaf
    except MalformedIdentifierError:
        # The anchor row is still shown; fill what can be read.
        system, sep, path = fqn.partition(":")
        if not sep:
            system, path = "", fqn
        project = path.split(".", 1)[0]
        leaf = leaf_name(fqn)
    return LineageRow(
        id=row_id,
        source_system=system,
        source_project=project,
        source=leaf,
        source_fqn=fqn,
    )
