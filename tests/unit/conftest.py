"""Shared fixtures for lineage engine unit tests.

:class:`FakeFetcher` stands in for the HTTP boundary.  Responses are keyed
by FQN; a test can hold a response back with :meth:`FakeFetcher.gate` and
release it later to control the order in which concurrent requests
complete.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from lineage_engine.errors import LineageTransportError
from lineage_engine.models.links import (
    AnchorEntry,
    ColumnLinkSearchResult,
    Direction,
    LineageLink,
    LinkSearchResult,
)

ANCHOR_FQN = "bq:proj.ds.orders"
ANCHOR_NAME = "projects/p/locations/us/entryGroups/@bigquery/entries/orders"


def make_link(
    source: str,
    target: str,
    *,
    name: str = "projects/p/locations/us/links/l1",
    process: str | None = None,
) -> LineageLink:
    return LineageLink(
        name=name,
        source={"fullyQualifiedName": source},
        target={"fullyQualifiedName": target},
        process=process,
    )


class FakeFetcher:
    """In-memory :class:`~lineage_engine.client.base.LineageLinkFetcher`."""

    def __init__(self) -> None:
        self.links: dict[str, LinkSearchResult] = {}
        self.column_links: ColumnLinkSearchResult = ColumnLinkSearchResult()
        self.entries: dict[str, dict[str, Any]] = {}
        self.processes: dict[str, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.calls: list[tuple[str, ...]] = []
        self.closed = False
        self._gates: dict[str, asyncio.Event] = {}

    def gate(self, key: str) -> asyncio.Event:
        """Hold back responses for *key* until the returned event is set."""
        event = asyncio.Event()
        self._gates[key] = event
        return event

    async def _wait(self, key: str) -> None:
        gate = self._gates.get(key)
        if gate is not None:
            await gate.wait()
        if key in self.failing:
            raise LineageTransportError(f"lineage service unavailable for {key}", path="/lineage", status_code=503)

    async def search_links(self, parent: str, fqn: str) -> LinkSearchResult:
        self.calls.append(("search_links", parent, fqn))
        await self._wait(fqn)
        return self.links.get(fqn, LinkSearchResult())

    async def search_column_links(self, parent: str, fqn: str, direction: Direction) -> ColumnLinkSearchResult:
        self.calls.append(("search_column_links", parent, fqn, direction.value))
        key = f"columns:{fqn}:{direction.value}"
        await self._wait(key if key in self._gates else f"columns:{fqn}")
        return self.column_links

    async def get_process_details(self, process: str) -> dict[str, Any]:
        self.calls.append(("get_process_details", process))
        await self._wait(process)
        return self.processes.get(process, {})

    async def get_entry(self, fqn: str) -> dict[str, Any]:
        self.calls.append(("get_entry", fqn))
        await self._wait(f"entry:{fqn}")
        return dict(self.entries.get(fqn, {}))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def anchor() -> AnchorEntry:
    return AnchorEntry(
        name=ANCHOR_NAME,
        fully_qualified_name=ANCHOR_FQN,
        payload={"name": ANCHOR_NAME, "fullyQualifiedName": ANCHOR_FQN, "entryType": "projects/655216118709/x"},
    )


@pytest.fixture
def anchor_links() -> LinkSearchResult:
    """One producer (raw_orders) and one consumer (orders_summary)."""
    return LinkSearchResult(
        target_links=[make_link("bq:proj.ds.raw_orders", ANCHOR_FQN, process="projects/p/locations/us/processes/etl")],
        source_links=[make_link(ANCHOR_FQN, "bq:proj.mart.orders_summary", name="projects/p/locations/eu/links/l2")],
    )


@pytest.fixture
def fetcher(anchor_links: LinkSearchResult) -> FakeFetcher:
    fake = FakeFetcher()
    fake.links[ANCHOR_FQN] = anchor_links
    return fake
