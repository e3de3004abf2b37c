"""Session state for viewing the lineage of one anchor entry at a time.

:class:`LineageSession` owns the *current* :class:`GraphModel` snapshot and
is the only place that replaces it.  Network requests run outside the
commit lock; their results are spliced onto whatever snapshot is current
when they arrive, so two expansions in flight at once never lose each
other's nodes.

Every request is bound to the session's anchor generation (bumped by
:meth:`LineageSession.open`) and to the graph epoch (bumped whenever the
view is replaced wholesale).  A result that arrives after either changed
is dropped.

Transport failures never escape a session operation.  They are logged and
reported to listeners registered with
:meth:`LineageSession.add_failure_listener`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from lineage_engine.client.base import LineageLinkFetcher
from lineage_engine.config import DEFAULT_SCHEMA_ASPECT_SUFFIX
from lineage_engine.errors import LineageTransportError, SessionNotOpenError
from lineage_engine.graph.builder import build_initial_graph, reset_graph
from lineage_engine.graph.column_projector import project_column_lineage
from lineage_engine.graph.expander import apply_expansion, expandable_asset, fetch_expansion_links
from lineage_engine.graph.list_projector import project_rows
from lineage_engine.models.graph import AssetNode, GraphModel, QueryNode
from lineage_engine.models.links import AnchorEntry, Direction, LinkSearchResult
from lineage_engine.models.rows import LineageRow, RowProjection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineageFailure:
    """Transient error signal for a failed session operation."""

    operation: str
    message: str
    node_id: str | None = None


FailureListener = Callable[[LineageFailure], None]


class LineageSession:
    """Serializes graph commits for one lineage view.

    Parameters
    ----------
    fetcher:
        Network boundary used for every request.  The session does not
        close it.
    aspect_suffix:
        Schema aspect suffix used by column projection.
    """

    def __init__(
        self,
        fetcher: LineageLinkFetcher,
        *,
        aspect_suffix: str = DEFAULT_SCHEMA_ASPECT_SUFFIX,
    ) -> None:
        self._fetcher = fetcher
        self._aspect_suffix = aspect_suffix
        self._lock = asyncio.Lock()
        self._graph: GraphModel | None = None
        self._generation = 0
        self._listeners: list[FailureListener] = []

    # -- State ---------------------------------------------------------------

    @property
    def graph(self) -> GraphModel:
        """The current snapshot.

        Raises
        ------
        SessionNotOpenError
            If :meth:`open` has not completed yet.
        """
        if self._graph is None:
            raise SessionNotOpenError("No anchor has been opened in this lineage session")
        return self._graph

    @property
    def is_open(self) -> bool:
        return self._graph is not None

    # -- Failure signal ------------------------------------------------------

    def add_failure_listener(self, listener: FailureListener) -> None:
        self._listeners.append(listener)

    def remove_failure_listener(self, listener: FailureListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, failure: LineageFailure) -> None:
        for listener in list(self._listeners):
            try:
                listener(failure)
            except Exception:
                logger.exception("Lineage failure listener %r raised", listener)

    # -- Operations ----------------------------------------------------------

    async def open(self, anchor: AnchorEntry) -> GraphModel:
        """Load the baseline graph for *anchor* and make it current.

        Results still in flight for a previously opened anchor are
        discarded when they arrive.  If the lineage search fails the root
        is shown alone and a failure is emitted.
        """
        self._generation += 1
        generation = self._generation

        try:
            links = await self._fetcher.search_links(anchor.parent_scope, anchor.fully_qualified_name)
        except LineageTransportError as exc:
            logger.warning("Lineage search for %s failed: %s", anchor.fully_qualified_name, exc)
            self._emit(LineageFailure(operation="open", message=str(exc)))
            links = LinkSearchResult()

        graph = build_initial_graph(anchor, links)
        async with self._lock:
            if generation != self._generation:
                logger.debug("Discarding lineage for %s: superseded by a newer anchor", anchor.fully_qualified_name)
                return graph
            return self._commit(graph, new_epoch=True)

    async def expand_upstream(self, node_id: str) -> GraphModel:
        """Grow the current graph by one producer hop from *node_id*."""
        return await self._expand(node_id, Direction.UPSTREAM)

    async def expand_downstream(self, node_id: str) -> GraphModel:
        """Grow the current graph by one consumer hop from *node_id*."""
        return await self._expand(node_id, Direction.DOWNSTREAM)

    async def _expand(self, node_id: str, direction: Direction) -> GraphModel:
        snapshot = self.graph
        generation, epoch = self._generation, snapshot.epoch
        node = expandable_asset(snapshot, node_id, direction)
        if node is None:
            return snapshot

        try:
            links = await fetch_expansion_links(snapshot, node, self._fetcher)
        except LineageTransportError as exc:
            logger.warning(
                "%s expansion of %s failed: %s",
                direction.value.capitalize(),
                node.fully_qualified_name,
                exc,
            )
            self._emit(LineageFailure(operation=f"expand_{direction.value}", message=str(exc), node_id=node_id))
            return self.graph

        async with self._lock:
            current = self.graph
            if not self._is_current(generation, epoch):
                logger.debug("Discarding %s expansion of %s: view changed", direction.value, node_id)
                return current
            if node_id not in current or expandable_asset(current, node_id, direction) is None:
                logger.debug("Discarding %s expansion of %s: node no longer expandable", direction.value, node_id)
                return current
            return self._commit(apply_expansion(current, node_id, direction, links))

    async def project_columns(self, column_name: str | None, direction: Direction = Direction.BOTH) -> GraphModel:
        """Replace the view with column-level lineage for the anchor.

        An empty or ``None`` *column_name* keeps every hop.
        """
        snapshot = self.graph
        generation, epoch = self._generation, snapshot.epoch
        anchor = snapshot.anchor

        try:
            links = await self._fetcher.search_column_links(anchor.parent_scope, anchor.fully_qualified_name, direction)
        except LineageTransportError as exc:
            logger.warning("Column lineage request for %s failed: %s", anchor.fully_qualified_name, exc)
            self._emit(LineageFailure(operation="project_columns", message=str(exc)))
            return self.graph

        async with self._lock:
            current = self.graph
            if not self._is_current(generation, epoch):
                logger.debug("Discarding column lineage for %s: view changed", anchor.fully_qualified_name)
                return current
            projected = project_column_lineage(
                current.anchor,
                column_name,
                direction,
                links,
                raw_upstream_links=current.raw_upstream_links,
                raw_downstream_links=current.raw_downstream_links,
                aspect_suffix=self._aspect_suffix,
            )
            return self._commit(projected, new_epoch=True)

    async def reset(self) -> GraphModel:
        """Return to the baseline 1-hop graph without any network request."""
        async with self._lock:
            current = self.graph
            baseline = reset_graph(current.anchor, current.raw_upstream_links, current.raw_downstream_links)
            return self._commit(baseline, new_epoch=True)

    def row_projection(self) -> RowProjection:
        """Tabular rows for the anchor's baseline links, with skipped links."""
        current = self.graph
        return project_rows(current.raw_downstream_links, current.raw_upstream_links, anchor=current.anchor)

    def rows(self) -> list[LineageRow]:
        return self.row_projection().rows

    async def load_entry_details(self, node_id: str) -> dict[str, Any] | None:
        """Fetch and store the full catalog entry of the asset *node_id*.

        Returns the entry payload, or ``None`` for query nodes and on
        failure.  Payloads already loaded are returned without a request.
        """
        snapshot = self.graph
        node = snapshot.require(node_id)
        if not isinstance(node, AssetNode):
            return None
        if node.entry_details:
            return node.entry_details

        generation, epoch = self._generation, snapshot.epoch
        try:
            entry = await self._fetcher.get_entry(node.fully_qualified_name)
        except LineageTransportError as exc:
            logger.warning("Entry lookup for %s failed: %s", node.fully_qualified_name, exc)
            self._emit(LineageFailure(operation="load_entry_details", message=str(exc), node_id=node_id))
            return None

        async with self._lock:
            current = self.graph
            target = current.get(node_id)
            if not self._is_current(generation, epoch) or not isinstance(target, AssetNode):
                logger.debug("Not storing entry details for %s: view changed", node_id)
                return entry
            updated = target.model_copy(update={"entry_details": entry})
            nodes = {nid: (updated if nid == node_id else existing) for nid, existing in current.nodes.items()}
            self._commit(current.model_copy(update={"nodes": nodes}))
        return entry

    async def process_details(self, node_id: str) -> dict[str, Any] | None:
        """Fetch job metadata for the process behind query node *node_id*.

        Returns ``None`` for asset nodes, query nodes without a process and
        on failure.
        """
        node = self.graph.require(node_id)
        if not isinstance(node, QueryNode) or not node.process:
            return None
        try:
            return await self._fetcher.get_process_details(node.process)
        except LineageTransportError as exc:
            logger.warning("Process details for %s failed: %s", node.process, exc)
            self._emit(LineageFailure(operation="process_details", message=str(exc), node_id=node_id))
            return None

    # -- Internal helpers ----------------------------------------------------

    def _is_current(self, generation: int, epoch: int) -> bool:
        return generation == self._generation and self._graph is not None and self._graph.epoch == epoch

    def _commit(self, graph: GraphModel, *, new_epoch: bool = False) -> GraphModel:
        previous = self._graph
        version = previous.version + 1 if previous is not None else 1
        epoch = previous.epoch if previous is not None else 0
        if new_epoch:
            epoch += 1
        committed = graph.model_copy(update={"version": version, "epoch": epoch})
        self._graph = committed
        logger.debug(
            "Committed lineage graph v%d (epoch %d, %s view, %d nodes)",
            version,
            epoch,
            committed.view.value,
            len(committed),
        )
        return committed
