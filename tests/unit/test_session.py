"""Tests for LineageSession: commits, concurrency and failure signals."""

from __future__ import annotations

import asyncio

import pytest
from conftest import ANCHOR_FQN, FakeFetcher, make_link

from lineage_engine.errors import SessionNotOpenError
from lineage_engine.graph.builder import build_initial_graph
from lineage_engine.models.graph import GraphView
from lineage_engine.models.links import AnchorEntry, ColumnLinkSearchResult, Direction, LinkSearchResult
from lineage_engine.session import LineageFailure, LineageSession

PRODUCER = "bq:proj.ds.raw_orders"
CONSUMER = "bq:proj.mart.orders_summary"


def _node_id(session: LineageSession, fqn: str) -> str:
    return next(n.id for n in session.graph.assets() if n.fully_qualified_name == fqn and not n.is_root)


@pytest.fixture
def deep_fetcher(fetcher: FakeFetcher) -> FakeFetcher:
    fetcher.links[PRODUCER] = LinkSearchResult(target_links=[make_link("bq:proj.landing.a", PRODUCER)])
    fetcher.links[CONSUMER] = LinkSearchResult(source_links=[make_link(CONSUMER, "bq:proj.bi.dashboard")])
    return fetcher


# ---------------------------------------------------------------------------
# open / state
# ---------------------------------------------------------------------------


class TestOpen:
    def test_graph_before_open_raises(self, fetcher):
        session = LineageSession(fetcher)
        assert not session.is_open
        with pytest.raises(SessionNotOpenError):
            _ = session.graph

    @pytest.mark.asyncio
    async def test_open_builds_baseline(self, anchor, anchor_links, fetcher):
        session = LineageSession(fetcher)

        graph = await session.open(anchor)

        assert fetcher.calls == [("search_links", "projects/p/locations/us", ANCHOR_FQN)]
        assert graph.nodes == build_initial_graph(anchor, anchor_links).nodes
        assert graph.version == 1
        assert graph.epoch == 1
        assert session.graph is graph

    @pytest.mark.asyncio
    async def test_open_failure_yields_root_only_and_signal(self, anchor):
        fetcher = FakeFetcher()
        fetcher.failing.add(ANCHOR_FQN)
        failures: list[LineageFailure] = []
        session = LineageSession(fetcher)
        session.add_failure_listener(failures.append)

        graph = await session.open(anchor)

        assert len(graph) == 1
        assert len(failures) == 1
        assert failures[0].operation == "open"
        assert "unavailable" in failures[0].message

    @pytest.mark.asyncio
    async def test_reopen_bumps_epoch(self, anchor, fetcher):
        session = LineageSession(fetcher)
        first = await session.open(anchor)
        second = await session.open(anchor)
        assert second.epoch == first.epoch + 1
        assert second.version == first.version + 1


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------


class TestExpansion:
    @pytest.mark.asyncio
    async def test_expand_commits_new_version(self, anchor, deep_fetcher):
        session = LineageSession(deep_fetcher)
        await session.open(anchor)

        graph = await session.expand_upstream(_node_id(session, PRODUCER))

        assert len(graph) == 7
        assert graph.version == 2
        assert graph.view is GraphView.EXPANDED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("upstream_first", [True, False])
    async def test_interleaved_expansions_keep_both(self, anchor, deep_fetcher, upstream_first):
        session = LineageSession(deep_fetcher)
        initial = await session.open(anchor)
        producer_id = _node_id(session, PRODUCER)
        consumer_id = _node_id(session, CONSUMER)
        up_gate = deep_fetcher.gate(PRODUCER)
        down_gate = deep_fetcher.gate(CONSUMER)

        up_task = asyncio.create_task(session.expand_upstream(producer_id))
        down_task = asyncio.create_task(session.expand_downstream(consumer_id))
        await asyncio.sleep(0)

        if upstream_first:
            up_gate.set()
            await up_task
            down_gate.set()
            await down_task
        else:
            down_gate.set()
            await down_task
            up_gate.set()
            await up_task

        final = session.graph
        assert len(final) == len(initial) + 4
        assert final.version == initial.version + 2
        assert not final.nodes[producer_id].can_expand(Direction.UPSTREAM)
        assert not final.nodes[consumer_id].can_expand(Direction.DOWNSTREAM)

    @pytest.mark.asyncio
    async def test_duplicate_expansion_applied_once(self, anchor, deep_fetcher):
        session = LineageSession(deep_fetcher)
        initial = await session.open(anchor)
        producer_id = _node_id(session, PRODUCER)
        gate = deep_fetcher.gate(PRODUCER)

        tasks = [asyncio.create_task(session.expand_upstream(producer_id)) for _ in range(2)]
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(*tasks)

        assert len(session.graph) == len(initial) + 2
        assert session.graph.version == initial.version + 1

    @pytest.mark.asyncio
    async def test_result_for_previous_anchor_discarded(self, anchor, deep_fetcher):
        other = AnchorEntry(name="projects/p/locations/us/entries/other", fully_qualified_name="bq:proj.ds.other")
        session = LineageSession(deep_fetcher)
        await session.open(anchor)
        producer_id = _node_id(session, PRODUCER)
        gate = deep_fetcher.gate(PRODUCER)

        task = asyncio.create_task(session.expand_upstream(producer_id))
        await asyncio.sleep(0)
        reopened = await session.open(other)
        gate.set()
        result = await task

        assert result is reopened
        assert session.graph is reopened
        assert session.graph.anchor.fully_qualified_name == "bq:proj.ds.other"
        assert len(session.graph) == 1

    @pytest.mark.asyncio
    async def test_result_after_column_projection_discarded(self, anchor, deep_fetcher):
        session = LineageSession(deep_fetcher)
        await session.open(anchor)
        producer_id = _node_id(session, PRODUCER)
        gate = deep_fetcher.gate(PRODUCER)

        task = asyncio.create_task(session.expand_upstream(producer_id))
        await asyncio.sleep(0)
        projected = await session.project_columns("id", Direction.BOTH)
        gate.set()
        await task

        assert session.graph is projected
        assert session.graph.view is GraphView.COLUMN

    @pytest.mark.asyncio
    async def test_expansion_failure_emits_signal(self, anchor, deep_fetcher):
        session = LineageSession(deep_fetcher)
        before = await session.open(anchor)
        producer_id = _node_id(session, PRODUCER)
        deep_fetcher.failing.add(PRODUCER)
        failures: list[LineageFailure] = []
        session.add_failure_listener(failures.append)

        result = await session.expand_upstream(producer_id)

        assert result is before
        assert failures == [
            LineageFailure(
                operation="expand_upstream",
                message="lineage service unavailable for bq:proj.ds.raw_orders",
                node_id=producer_id,
            )
        ]
        assert result.nodes[producer_id].can_expand(Direction.UPSTREAM)

    @pytest.mark.asyncio
    async def test_listener_errors_are_contained(self, anchor, deep_fetcher, caplog):
        session = LineageSession(deep_fetcher)
        await session.open(anchor)
        deep_fetcher.failing.add(PRODUCER)
        received: list[LineageFailure] = []

        def broken(failure: LineageFailure) -> None:
            raise RuntimeError("listener bug")

        session.add_failure_listener(broken)
        session.add_failure_listener(received.append)

        await session.expand_upstream(_node_id(session, PRODUCER))

        assert len(received) == 1
        assert "listener" in caplog.text

    @pytest.mark.asyncio
    async def test_removed_listener_not_called(self, anchor, deep_fetcher):
        session = LineageSession(deep_fetcher)
        await session.open(anchor)
        deep_fetcher.failing.add(PRODUCER)
        received: list[LineageFailure] = []
        session.add_failure_listener(received.append)
        session.remove_failure_listener(received.append)

        await session.expand_upstream(_node_id(session, PRODUCER))
        assert received == []


# ---------------------------------------------------------------------------
# Column projection / reset / rows
# ---------------------------------------------------------------------------


class TestViews:
    @pytest.mark.asyncio
    async def test_project_then_reset(self, anchor, anchor_links, deep_fetcher):
        deep_fetcher.column_links = ColumnLinkSearchResult()
        session = LineageSession(deep_fetcher)
        await session.open(anchor)
        await session.expand_upstream(_node_id(session, PRODUCER))

        projected = await session.project_columns("nonexistent_column", Direction.BOTH)
        assert len(projected) == 1
        assert projected.raw_upstream_links == anchor_links.target_links

        reset = await session.reset()
        assert reset.nodes == build_initial_graph(anchor, anchor_links).nodes
        assert reset.view is GraphView.BASELINE
        assert reset.column_scope is None
        assert reset.epoch == projected.epoch + 1

    @pytest.mark.asyncio
    async def test_project_failure_keeps_view(self, anchor, fetcher):
        fetcher.failing.add(f"columns:{ANCHOR_FQN}")
        failures: list[LineageFailure] = []
        session = LineageSession(fetcher)
        session.add_failure_listener(failures.append)
        before = await session.open(anchor)

        assert await session.project_columns("id") is before
        assert failures[0].operation == "project_columns"

    @pytest.mark.asyncio
    async def test_late_projection_loses_to_newer_projection(self, anchor, fetcher):
        session = LineageSession(fetcher)
        await session.open(anchor)
        first_gate = fetcher.gate(f"columns:{ANCHOR_FQN}:upstream")
        second_gate = fetcher.gate(f"columns:{ANCHOR_FQN}:downstream")

        first = asyncio.create_task(session.project_columns("a", Direction.UPSTREAM))
        await asyncio.sleep(0)
        second = asyncio.create_task(session.project_columns("b", Direction.DOWNSTREAM))
        await asyncio.sleep(0)
        second_gate.set()
        newer = await second
        first_gate.set()
        await first

        assert session.graph is newer
        assert session.graph.column_scope.column_name == "b"
        assert session.graph.column_scope.direction is Direction.DOWNSTREAM

    @pytest.mark.asyncio
    async def test_late_projection_after_reset_discarded(self, anchor, fetcher):
        session = LineageSession(fetcher)
        await session.open(anchor)
        gate = fetcher.gate(f"columns:{ANCHOR_FQN}")

        task = asyncio.create_task(session.project_columns("a"))
        await asyncio.sleep(0)
        reset = await session.reset()
        gate.set()
        result = await task

        assert result is reset
        assert session.graph is reset
        assert session.graph.view is GraphView.BASELINE
        assert session.graph.column_scope is None

    @pytest.mark.asyncio
    async def test_rows_from_baseline_links(self, anchor, fetcher):
        session = LineageSession(fetcher)
        await session.open(anchor)

        rows = session.rows()
        assert [(r.source, r.target) for r in rows] == [("raw_orders", "orders"), ("orders", "orders_summary")]
        assert session.row_projection().skipped == []


# ---------------------------------------------------------------------------
# Entry and process details
# ---------------------------------------------------------------------------


class TestDetails:
    @pytest.mark.asyncio
    async def test_load_entry_details_stores_payload(self, anchor, fetcher):
        fetcher.entries[PRODUCER] = {"name": "entries/raw_orders", "entryType": "projects/1/x"}
        session = LineageSession(fetcher)
        await session.open(anchor)
        producer_id = _node_id(session, PRODUCER)

        entry = await session.load_entry_details(producer_id)

        assert entry == {"name": "entries/raw_orders", "entryType": "projects/1/x"}
        assert session.graph.nodes[producer_id].entry_details == entry
        assert session.graph.version == 2

    @pytest.mark.asyncio
    async def test_loaded_entry_not_refetched(self, anchor, fetcher):
        session = LineageSession(fetcher)
        await session.open(anchor)

        entry = await session.load_entry_details(session.graph.root_id)

        assert entry == anchor.payload
        assert all(call[0] != "get_entry" for call in fetcher.calls)

    @pytest.mark.asyncio
    async def test_entry_details_for_query_is_none(self, anchor, fetcher):
        session = LineageSession(fetcher)
        await session.open(anchor)
        query = next(session.graph.queries())
        assert await session.load_entry_details(query.id) is None

    @pytest.mark.asyncio
    async def test_entry_failure_emits_signal(self, anchor, fetcher):
        fetcher.failing.add(f"entry:{PRODUCER}")
        failures: list[LineageFailure] = []
        session = LineageSession(fetcher)
        session.add_failure_listener(failures.append)
        await session.open(anchor)

        assert await session.load_entry_details(_node_id(session, PRODUCER)) is None
        assert failures[0].operation == "load_entry_details"

    @pytest.mark.asyncio
    async def test_process_details(self, anchor, fetcher):
        process = "projects/p/locations/us/processes/etl"
        fetcher.processes[process] = {"process": {"displayName": "etl"}, "jobs": []}
        session = LineageSession(fetcher)
        await session.open(anchor)
        upstream_query, downstream_query = list(session.graph.queries())

        assert await session.process_details(upstream_query.id) == {"process": {"displayName": "etl"}, "jobs": []}
        assert await session.process_details(downstream_query.id) is None
        assert await session.process_details(session.graph.root_id) is None

    @pytest.mark.asyncio
    async def test_process_details_failure(self, anchor, fetcher):
        process = "projects/p/locations/us/processes/etl"
        fetcher.failing.add(process)
        session = LineageSession(fetcher)
        await session.open(anchor)
        upstream_query = next(session.graph.queries())

        assert await session.process_details(upstream_query.id) is None
