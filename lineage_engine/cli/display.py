"""Rich output formatting for the lineage CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from collections import defaultdict

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from lineage_engine.models.graph import AssetNode, GraphModel, GraphView, LineageNode
from lineage_engine.models.links import Direction
from lineage_engine.models.rows import LineageRow, MalformedIdentifier

# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


def display_rows(
    console: Console,
    rows: list[LineageRow],
    skipped: list[MalformedIdentifier] | None = None,
) -> None:
    """Render the flat lineage table.

    Parameters
    ----------
    console:
        Rich console to write to.
    rows:
        Rows produced by :func:`~lineage_engine.graph.list_projector.project_rows`.
    skipped:
        Links dropped because of malformed identifiers, listed below the
        table.
    """
    if not rows:
        console.print("[dim]No lineage links.[/dim]")
    else:
        table = Table(title=f"Lineage links ({len(rows)})", show_lines=False, expand=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Source System")
        table.add_column("Source Project")
        table.add_column("Source", style="bold blue")
        table.add_column("Target System")
        table.add_column("Target Project")
        table.add_column("Target", style="bold green")

        for row in rows:
            table.add_row(
                str(row.id),
                row.source_system,
                row.source_project,
                row.source,
                row.target_system or "-",
                row.target_project or "-",
                row.target or "-",
            )
        console.print(table)

    for item in skipped or []:
        console.print(f"[yellow]Skipped {item.fqn}: {item.reason}[/yellow]")


# ---------------------------------------------------------------------------
# Hop tree
# ---------------------------------------------------------------------------


_VIEW_STYLES: dict[GraphView, str] = {
    GraphView.BASELINE: "yellow",
    GraphView.EXPANDED: "cyan",
    GraphView.COLUMN: "magenta",
}


def _node_label(node: LineageNode) -> str:
    if isinstance(node, AssetNode):
        style = "bold yellow" if node.is_root else ("blue" if node.level < 0 else "green")
        label = f"[{style}]{node.display_name}[/{style}] [dim]{node.fully_qualified_name}[/dim]"
        markers = []
        if node.can_expand(Direction.UPSTREAM):
            markers.append("<")
        if node.can_expand(Direction.DOWNSTREAM):
            markers.append(">")
        if markers:
            label += f" [cyan]{''.join(markers)}[/cyan]"
        return label
    return f"[dim italic]{node.display_name}[/dim italic]"


def display_graph(console: Console, graph: GraphModel) -> None:
    """Render *graph* as a tree of hop levels, upstream first.

    Expandable assets are marked with ``<`` (more producers) and ``>``
    (more consumers).
    """
    by_level: dict[int, list[LineageNode]] = defaultdict(list)
    for node in graph.nodes.values():
        by_level[node.level].append(node)

    style = _VIEW_STYLES[graph.view]
    title = graph.anchor.display_name
    if graph.column_scope is not None and graph.column_scope.column_name:
        title += f" [dim](column {graph.column_scope.column_name})[/dim]"
    tree = Tree(f"[bold {style}]{title}[/bold {style}]", guide_style="dim")

    for level in sorted(by_level):
        branch = tree.add(f"[bold]level {level}[/bold]")
        for node in sorted(by_level[level], key=lambda n: n.sequence):
            branch.add(_node_label(node))

    console.print(Panel(tree, title=f"Lineage ({graph.view.value})", border_style=style))

    assets = sum(1 for _ in graph.assets())
    queries = sum(1 for _ in graph.queries())
    console.print(f"[bold]{assets}[/bold] assets, [bold]{queries}[/bold] queries, version {graph.version}")
