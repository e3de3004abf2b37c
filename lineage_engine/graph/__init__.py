"""Lineage graph construction, expansion, column projection and analysis."""

from lineage_engine.graph.analysis import (
    downstream_of,
    find_violations,
    to_digraph,
    upstream_of,
    validate_graph,
)
from lineage_engine.graph.builder import build_initial_graph, reset_graph
from lineage_engine.graph.column_projector import (
    project_column_lineage,
    project_columns,
    schema_field_names,
)
from lineage_engine.graph.expander import apply_expansion, expand_downstream, expand_upstream
from lineage_engine.graph.list_projector import project_rows, to_rows

__all__ = [
    # Construction
    "build_initial_graph",
    "reset_graph",
    # Expansion
    "apply_expansion",
    "expand_downstream",
    "expand_upstream",
    # Column-level lineage
    "project_column_lineage",
    "project_columns",
    "schema_field_names",
    # List view
    "project_rows",
    "to_rows",
    # Analysis
    "downstream_of",
    "find_violations",
    "to_digraph",
    "upstream_of",
    "validate_graph",
]
