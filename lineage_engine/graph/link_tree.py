"""Typed view over the nested link trees returned by column-level search.

The column-level service resolves several hops at once and returns each
top-level link with its further hops nested under ``children``.  Rather than
probing those payloads ad hoc, they are converted into
``LinkTree = LinkLeaf | LinkBranch`` and walked with a :class:`LinkTreeVisitor`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from lineage_engine.models.links import ColumnLineageLink

C = TypeVar("C")


@dataclass(frozen=True)
class LinkLeaf:
    """A link with no further resolved hops."""

    link: ColumnLineageLink


@dataclass(frozen=True)
class LinkBranch:
    """A link whose further hops are already resolved."""

    link: ColumnLineageLink
    children: tuple[LinkTree, ...]


LinkTree = LinkLeaf | LinkBranch


def build_link_tree(link: ColumnLineageLink) -> LinkTree:
    """Convert a nested :class:`ColumnLineageLink` into a :data:`LinkTree`."""
    if not link.children:
        return LinkLeaf(link)
    return LinkBranch(link, tuple(build_link_tree(child) for child in link.children))


class LinkTreeVisitor(Protocol, Generic[C]):
    """Callback invoked once per link, depth-first, parents before children."""

    def visit(self, link: ColumnLineageLink, depth: int, context: C) -> C:
        """Handle *link* and return the context passed to its children."""
        ...


def walk_link_tree(tree: LinkTree, visitor: LinkTreeVisitor[C], context: C, depth: int = 0) -> None:
    """Visit every link in *tree* in pre-order.

    Each child receives the context returned by its parent's visit, so a
    visitor can carry "nearest emitted ancestor" style state down a branch
    without it leaking into sibling branches.
    """
    child_context = visitor.visit(tree.link, depth, context)
    if isinstance(tree, LinkBranch):
        for child in tree.children:
            walk_link_tree(child, visitor, child_context, depth + 1)
