"""Abstract interface for lineage collaborators.

The graph operations only depend on :class:`LineageLinkFetcher`, so tests
and alternative backends (an in-process catalog, a recorded fixture) can be
swapped in without touching the engine.
"""

from __future__ import annotations

from typing import Any, Protocol

from lineage_engine.models.links import ColumnLinkSearchResult, Direction, LinkSearchResult


class LineageLinkFetcher(Protocol):
    """Structural interface for the lineage network boundary.

    Implementations are **not** required to subclass this protocol; they only
    need to expose methods with matching signatures (duck typing).  Every
    method raises :class:`~lineage_engine.errors.LineageTransportError` when
    the collaborator cannot be reached or answers with an error.
    """

    async def search_links(self, parent: str, fqn: str) -> LinkSearchResult:
        """Return the 1-hop links around *fqn*.

        Parameters
        ----------
        parent:
            Lineage scope, ``projects/<p>/locations/<l>``.
        fqn:
            Fully-qualified name of the asset.
        """
        ...

    async def search_column_links(self, parent: str, fqn: str, direction: Direction) -> ColumnLinkSearchResult:
        """Return pre-resolved multi-hop link trees around *fqn* in *direction*."""
        ...

    async def get_process_details(self, process: str) -> dict[str, Any]:
        """Return process and job metadata for a process resource name."""
        ...

    async def get_entry(self, fqn: str) -> dict[str, Any]:
        """Return the full catalog entry payload for *fqn*."""
        ...

    async def aclose(self) -> None:
        """Release any connections held by the fetcher."""
        ...
