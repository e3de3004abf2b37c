"""Lineage CLI application -- Typer-based interface to a lineage API.

Provides commands to show the lineage graph and table of a catalog entry
and to scope its lineage to a single column.  Human-readable output goes to
*stderr* via Rich; ``--json`` writes the graph payload to *stdout* so that
pipelines can compose cleanly.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import typer
from rich.console import Console

from lineage_engine.cli.display import display_graph, display_rows
from lineage_engine.client.base import LineageLinkFetcher
from lineage_engine.client.fetcher import HttpLineageFetcher
from lineage_engine.config import Settings, load_settings
from lineage_engine.errors import LineageTransportError
from lineage_engine.logging_config import configure_logging
from lineage_engine.models.graph import GraphModel
from lineage_engine.models.links import AnchorEntry, Direction
from lineage_engine.models.rows import RowProjection
from lineage_engine.session import LineageFailure, LineageSession

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="lineage-engine",
    help="Explore upstream and downstream data lineage of catalog entries.",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_json_output: bool = False


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit the lineage graph as JSON on stdout instead of tables.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _build_fetcher(settings: Settings) -> LineageLinkFetcher:
    return HttpLineageFetcher.from_settings(settings)


def _report_failure(failure: LineageFailure) -> None:
    target = f" ({failure.node_id})" if failure.node_id else ""
    console.print(f"[yellow]{failure.operation}{target} failed: {failure.message}[/yellow]")


async def _resolve_anchor(fetcher: LineageLinkFetcher, fqn: str, name: str | None) -> AnchorEntry:
    if name:
        return AnchorEntry(name=name, fully_qualified_name=fqn)
    entry = await fetcher.get_entry(fqn)
    entry.setdefault("name", "")
    entry.setdefault("fullyQualifiedName", fqn)
    return AnchorEntry.from_entry(entry)


async def _expand_all(session: LineageSession, rounds: int) -> None:
    """Expand every expandable asset, *rounds* times, requests in parallel."""
    for _ in range(rounds):
        pending = []
        for node in session.graph.assets():
            if node.can_expand(Direction.UPSTREAM):
                pending.append(session.expand_upstream(node.id))
            if node.can_expand(Direction.DOWNSTREAM):
                pending.append(session.expand_downstream(node.id))
        if not pending:
            return
        await asyncio.gather(*pending)


async def _run(
    fqn: str,
    name: str | None,
    settings: Settings,
    *,
    depth: int = 1,
    column: str | None = None,
    direction: Direction = Direction.BOTH,
) -> tuple[GraphModel, RowProjection]:
    fetcher = _build_fetcher(settings)
    try:
        anchor = await _resolve_anchor(fetcher, fqn, name)
        session = LineageSession(fetcher, aspect_suffix=settings.schema_aspect_suffix)
        session.add_failure_listener(_report_failure)
        await session.open(anchor)
        if column is not None:
            await session.project_columns(column, direction)
        else:
            await _expand_all(session, depth - 1)
        return session.graph, session.row_projection()
    finally:
        await fetcher.aclose()


def _emit(graph: GraphModel, projection: RowProjection) -> None:
    if _json_output:
        result: dict[str, Any] = {
            "graph": graph.to_payload(),
            "rows": [row.model_dump(by_alias=True) for row in projection.rows],
            "skipped": [item.model_dump() for item in projection.skipped],
        }
        sys.stdout.write(json.dumps(result, indent=2) + "\n")
    else:
        display_rows(console, projection.rows, projection.skipped)
        display_graph(console, graph)


def _execute(coro: Any) -> tuple[GraphModel, RowProjection]:
    try:
        return asyncio.run(coro)
    except LineageTransportError as exc:
        console.print(f"[red]Lineage request failed: {exc}[/red]")
        raise typer.Exit(code=3) from exc


# ---------------------------------------------------------------------------
# show -- graph and table for an entry
# ---------------------------------------------------------------------------


@app.command()
def show(
    fqn: str = typer.Argument(..., help="Fully-qualified name, e.g. bigquery:proj.dataset.table."),
    name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Catalog resource name of the entry.  Looked up by FQN when omitted.",
    ),
    depth: int = typer.Option(
        1,
        "--depth",
        help="Number of hops to load on each side of the entry.",
        min=1,
        max=10,
    ),
) -> None:
    """Display the lineage table and hop tree of a catalog entry."""
    settings = load_settings()
    configure_logging(settings)
    graph, projection = _execute(_run(fqn, name, settings, depth=depth))
    _emit(graph, projection)


# ---------------------------------------------------------------------------
# columns -- column-scoped lineage
# ---------------------------------------------------------------------------


@app.command()
def columns(
    fqn: str = typer.Argument(..., help="Fully-qualified name, e.g. bigquery:proj.dataset.table."),
    column: str = typer.Option(
        "",
        "--column",
        "-c",
        help="Column to trace.  Empty keeps every hop.",
    ),
    direction: Direction = typer.Option(
        Direction.BOTH,
        "--direction",
        "-d",
        case_sensitive=False,
        help="Which side of the entry to trace.",
    ),
    name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Catalog resource name of the entry.  Looked up by FQN when omitted.",
    ),
) -> None:
    """Display lineage restricted to hops whose schema contains a column."""
    settings = load_settings()
    configure_logging(settings)
    graph, projection = _execute(_run(fqn, name, settings, column=column, direction=direction))
    _emit(graph, projection)
