"""
Schema Graph of Foreign Key References

This module builds the planner's table graph from parsed table definitions:
- Table index assignment and name resolution
- Forward and backward foreign key adjacency
- BFS-based connectivity checking
"""

import logging
from typing import Dict, FrozenSet, List, Set

from constants import EdgeKey, TableDefinition, TableIndex, TableNode
from errors import SchemaError
from utils import generate_canonical_key

logger = logging.getLogger(__name__)


class SchemaGraph:
    """
    Graph of tables connected by foreign keys

    Foreign keys are directed, but join traversal treats every edge as
    undirected: "T joins R" holds whichever table declared the key.
    """

    def __init__(self):
        self.nodes: List[TableNode] = []
        self.edges: Set[EdgeKey] = set()
        self.table_indices: Dict[str, TableIndex] = {}  # name -> index

    @classmethod
    def from_definitions(cls, definitions: List[TableDefinition]) -> 'SchemaGraph':
        """
        Build the graph for one planning run

        Args:
            definitions: Tables in input order; the order fixes table indices

        Returns:
            SchemaGraph with one TableNode per definition

        Raises:
            SchemaError: On duplicate table names or a foreign key whose
                target table is not part of the input
        """
        graph = cls()

        for index, definition in enumerate(definitions):
            if definition.name in graph.table_indices:
                raise SchemaError(f"duplicate table: {definition.name}")
            graph.table_indices[definition.name] = index

        refs: List[Set[TableIndex]] = [set() for _ in definitions]
        back_refs: List[Set[TableIndex]] = [set() for _ in definitions]

        for index, definition in enumerate(definitions):
            for foreign_key in definition.foreign_keys:
                target = graph.table_indices.get(foreign_key.ref_table)
                if target is None:
                    raise SchemaError(
                        f"ref table not found: {definition.name} references {foreign_key.ref_table}"
                    )

                refs[index].add(target)
                back_refs[target].add(index)
                graph.add_edge(definition.name, foreign_key.ref_table)

        for index, definition in enumerate(definitions):
            graph.nodes.append(TableNode(
                index=index,
                name=definition.name,
                refs=frozenset(refs[index]),
                back_refs=frozenset(back_refs[index])
            ))

        logger.debug("schema graph: %d tables, %d edges", len(graph.nodes), len(graph.edges))

        return graph

    @property
    def table_num(self) -> int:
        return len(self.nodes)

    def add_edge(self, t1: str, t2: str) -> None:
        """
        Record an undirected edge between two table names

        Self references are kept out of the edge set; a table never joins
        itself without aliasing.
        """
        if t1 == t2:
            return

        self.edges.add(generate_canonical_key([t1, t2]))

    def node(self, index: TableIndex) -> TableNode:
        return self.nodes[index]

    def index_of(self, name: str) -> TableIndex:
        try:
            return self.table_indices[name]
        except KeyError:
            raise SchemaError(f"unknown table: {name}") from None

    def neighbors(self, index: TableIndex) -> FrozenSet[TableIndex]:
        return self.nodes[index].neighbors

    def is_connected(self, subset: Set[TableIndex]) -> bool:
        """
        Check if a subset of tables is connected via foreign keys

        Uses BFS restricted to the subset.

        Args:
            subset: Set of table indices

        Returns:
            True if all tables in subset are reachable from the first table
        """
        if len(subset) <= 1:
            return True

        start = min(subset)

        visited = {start}
        queue = [start]

        while queue:
            current = queue.pop(0)

            for other in self.neighbors(current):
                if other in subset and other not in visited:
                    visited.add(other)
                    queue.append(other)

        return len(visited) == len(subset)

    def can_join(self, left: Set[TableIndex], right: Set[TableIndex]) -> bool:
        """
        Check if two subsets can be joined

        Returns True if any table from left has a foreign key edge, in
        either direction, to any table from right.
        """
        for l in left:
            if self.neighbors(l) & right:
                return True

        return False
