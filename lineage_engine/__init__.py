"""Lineage graph construction, incremental expansion and column-level filtering."""
