"""
Foreign key dependency ordering for Cross-Database Dumper.
"""

import logging
from typing import Optional

from .connection import DatabaseConnection
from .errors import IntrospectionError
from .models import DumpDiagnostics, WarningKind

DependencyGraph = dict[str, set[str]]


def _find_cycle(start: str, pending: DependencyGraph, position: dict[str, int]) -> list[str]:
    """Follow unresolved parents from start until a table repeats."""
    path = []
    seen = {}
    table = start
    while table not in seen:
        seen[table] = len(path)
        path.append(table)
        table = min(pending[table], key=position.__getitem__)
    return path[seen[table]:]


def get_table_dependencies(connection: DatabaseConnection, tables: list[str]) -> DependencyGraph:
    """
    Build table -> parent tables for the requested tables.

    Edges to tables outside the requested set and self-references
    (e.g. ``categories.parent_id -> categories.id``) are dropped.
    """
    requested = set(tables)
    graph: DependencyGraph = {table: set() for table in tables}

    for table in tables:
        try:
            foreign_keys = connection.get_foreign_keys(table)
        except IntrospectionError:
            raise
        except Exception as e:
            raise IntrospectionError(f"Cannot read foreign keys of table '{table}': {e}", table) from e

        for fk in foreign_keys:
            parent = fk.referenced_table
            if parent in requested and parent != table:
                graph[table].add(parent)

    edges = {t: sorted(p) for t, p in graph.items() if p}
    logging.debug(f"Dependency graph: {edges}")
    return graph


def topological_sort(
    tables: list[str],
    graph: DependencyGraph,
    diagnostics: Optional[DumpDiagnostics] = None
) -> list[str]:
    """
    Order tables so every parent precedes its children.

    Kahn's algorithm; among tables that are ready the one earliest in the
    input order goes first. When nothing is ready, a cycle is located and its
    earliest table is emitted anyway, with a cycle warning.
    """
    tables = list(dict.fromkeys(tables))
    position = {table: i for i, table in enumerate(tables)}
    pending = {
        table: {p for p in graph.get(table, ()) if p in position and p != table}
        for table in tables
    }
    children: dict[str, set[str]] = {table: set() for table in tables}
    for table, parents in pending.items():
        for parent in parents:
            children[parent].add(table)

    ordered = []
    remaining = set(tables)
    while remaining:
        ready = [t for t in remaining if not pending[t]]
        if ready:
            table = min(ready, key=position.__getitem__)
        else:
            start = min(remaining, key=position.__getitem__)
            cycle = sorted(_find_cycle(start, pending, position), key=position.__getitem__)
            table = cycle[0]
            message = (
                f"Circular foreign key dependency among tables: {', '.join(cycle)}; "
                f"emitting '{table}' first"
            )
            if diagnostics is not None:
                diagnostics.add(WarningKind.CYCLE, message, table=table)
            else:
                logging.warning(message)

        ordered.append(table)
        remaining.discard(table)
        for child in children[table]:
            pending[child].discard(table)

    return ordered
