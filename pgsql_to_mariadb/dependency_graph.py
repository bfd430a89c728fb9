"""Table creation order from foreign key dependencies."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from pgsql_to_mariadb.descriptors import ForeignKeyDescriptor

logger = logging.getLogger(__name__)

WHITE, GREY, BLACK = 0, 1, 2

Edge = Tuple[str, str]


@dataclass(frozen=True)
class DependencyGraph:
    """Tables as nodes, table -> referenced table as edges."""
    tables: Tuple[str, ...]
    edges: Mapping[str, Tuple[str, ...]]

    @classmethod
    def from_foreign_keys(
        cls,
        tables: Sequence[str],
        foreign_keys: Mapping[str, Iterable[ForeignKeyDescriptor]],
    ) -> "DependencyGraph":
        nodes = tuple(dict.fromkeys(tables))
        known = set(nodes)
        edges: Dict[str, Tuple[str, ...]] = {}
        for table in nodes:
            targets: List[str] = []
            for fk in foreign_keys.get(table, ()):
                ref = fk.referenced_table
                if ref not in known:
                    logger.debug(f"Ignoring dependency {table} -> {ref}: table not migrated")
                    continue
                if ref not in targets:
                    targets.append(ref)
            edges[table] = tuple(targets)
        return cls(tables=nodes, edges=edges)

    def dependencies(self, table: str) -> Tuple[str, ...]:
        return tuple(self.edges.get(table, ()))


@dataclass(frozen=True)
class TableOrder:
    tables: Tuple[str, ...]
    deferred_edges: Tuple[Edge, ...] = ()

    def __iter__(self):
        return iter(self.tables)

    def __len__(self):
        return len(self.tables)

    def is_deferred(self, table: str, referenced_table: str) -> bool:
        return (table, referenced_table) in self.deferred_edges


def resolve_table_order(graph: DependencyGraph) -> TableOrder:
    """Order tables so every table follows the tables it references.

    Iterative depth-first search with three colours. An edge into a node that
    is still in progress closes a cycle: it is logged, recorded as deferred and
    treated as satisfied, so the search always terminates and every table is
    emitted exactly once.
    """
    colour = {table: WHITE for table in graph.tables}
    ordered: List[str] = []
    deferred: List[Edge] = []

    for root in graph.tables:
        if colour[root] != WHITE:
            continue
        colour[root] = GREY
        stack = [(root, iter(graph.dependencies(root)))]
        while stack:
            table, pending = stack[-1]
            advanced = False
            for dep in pending:
                state = colour.get(dep)
                if state is None or state == BLACK:
                    continue
                if state == GREY:
                    logger.warning(
                        f"Circular foreign key dependency {table} -> {dep}; "
                        f"constraint will be attached after all tables exist"
                    )
                    deferred.append((table, dep))
                    continue
                colour[dep] = GREY
                stack.append((dep, iter(graph.dependencies(dep))))
                advanced = True
                break
            if not advanced:
                stack.pop()
                colour[table] = BLACK
                ordered.append(table)

    return TableOrder(tables=tuple(ordered), deferred_edges=tuple(deferred))
