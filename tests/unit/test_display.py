"""Tests for lineage_engine.cli.display -- Rich output formatting.

Rendered output is captured via a Console writing to a StringIO buffer
rather than stderr.
"""

from __future__ import annotations

import io

from conftest import ANCHOR_FQN, make_link
from rich.console import Console

from lineage_engine.cli.display import display_graph, display_rows
from lineage_engine.graph.builder import build_initial_graph
from lineage_engine.graph.expander import apply_expansion
from lineage_engine.graph.list_projector import project_rows
from lineage_engine.models.graph import ColumnScope, GraphView
from lineage_engine.models.links import Direction, LinkSearchResult


def _capture_console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    console = Console(file=buf, no_color=True, highlight=False, width=160)
    return console, buf


# ---------------------------------------------------------------------------
# display_rows
# ---------------------------------------------------------------------------


class TestDisplayRows:
    def test_renders_rows(self, anchor_links):
        console, buf = _capture_console()
        projection = project_rows(anchor_links.source_links, anchor_links.target_links)

        display_rows(console, projection.rows, projection.skipped)

        output = buf.getvalue()
        assert "Lineage links (2)" in output
        assert "raw_orders" in output
        assert "orders_summary" in output
        assert "Source System" in output

    def test_placeholder_row_shows_dashes(self, anchor):
        console, buf = _capture_console()

        display_rows(console, project_rows([], [], anchor=anchor).rows)

        output = buf.getvalue()
        assert "Lineage links (1)" in output
        assert "-" in output

    def test_empty_rows(self):
        console, buf = _capture_console()
        display_rows(console, [])
        assert "No lineage links" in buf.getvalue()

    def test_skipped_links_listed(self):
        console, buf = _capture_console()
        projection = project_rows([make_link("broken", "bq:proj.ds.t")], [])

        display_rows(console, projection.rows, projection.skipped)

        output = buf.getvalue()
        assert "Skipped broken" in output
        assert "separator" in output


# ---------------------------------------------------------------------------
# display_graph
# ---------------------------------------------------------------------------


class TestDisplayGraph:
    def test_levels_in_order(self, anchor, anchor_links):
        console, buf = _capture_console()

        display_graph(console, build_initial_graph(anchor, anchor_links))

        output = buf.getvalue()
        positions = [output.index(f"level {level}") for level in (-2, -1, 0, 1, 2)]
        assert positions == sorted(positions)
        assert "Lineage (baseline)" in output
        assert "3 assets, 2 queries, version 0" in output

    def test_expandable_markers(self, anchor, anchor_links):
        console, buf = _capture_console()
        graph = build_initial_graph(anchor, anchor_links)

        display_graph(console, graph)

        lines = buf.getvalue().splitlines()
        producer_line = next(line for line in lines if "bq:proj.ds.raw_orders" in line)
        root_line = next(line for line in lines if ANCHOR_FQN in line and "raw_orders" not in line)
        assert producer_line.rstrip(" │").endswith("<")
        assert not root_line.rstrip(" │").endswith(("<", ">"))

    def test_expanded_view_title(self, anchor, anchor_links):
        console, buf = _capture_console()
        graph = build_initial_graph(anchor, anchor_links)
        producer = next(n for n in graph.assets() if n.level == -2)
        graph = apply_expansion(
            graph,
            producer.id,
            Direction.UPSTREAM,
            LinkSearchResult(target_links=[make_link("bq:proj.landing.a", producer.fully_qualified_name)]),
        )

        display_graph(console, graph)

        output = buf.getvalue()
        assert "Lineage (expanded)" in output
        assert "level -4" in output

    def test_column_scope_in_title(self, anchor):
        console, buf = _capture_console()
        graph = build_initial_graph(anchor, LinkSearchResult()).model_copy(
            update={"view": GraphView.COLUMN, "column_scope": ColumnScope(column_name="id")}
        )

        display_graph(console, graph)

        output = buf.getvalue()
        assert "column id" in output
        assert "Lineage (column)" in output
