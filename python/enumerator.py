"""
Join Combination Planner

Breadth-first enumeration of every connected set of tables up to the join
width, deduplicated by fingerprint, plus the navigation edges a code
emitter needs to chain join accessors.
"""

import logging
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from constants import (
    DEFAULT_JOIN_NUM,
    CombinationId,
    Fingerprint,
    JoinCombination,
    TableIndex,
)
from join_graph import SchemaGraph
from registry import CombinationRegistry

logger = logging.getLogger(__name__)


class JoinPlanner:
    """
    Planner for the legal join shapes of a schema

    Runs four phases in order: seeding, growth, table extension and
    combination merge. Every combination is registered in the width cache
    of each of its member tables, so later phases can extend it from any
    member.
    """

    def __init__(self, graph: SchemaGraph):
        """
        Initialize planner

        Args:
            graph: SchemaGraph for the tables to plan
        """
        self.graph = graph
        self.join_num = DEFAULT_JOIN_NUM
        self.registry = CombinationRegistry(graph.table_num)
        self.caches: List[List[Dict[Fingerprint, CombinationId]]] = []  # table -> width-1 -> combinations
        self.table_ref_joined_tables: List[Dict[CombinationId, CombinationId]] = []  # partner -> result
        self.table_bridges: List[Dict[TableIndex, CombinationId]] = []  # FK target -> two-table combination

    def plan(self, join_num: int = DEFAULT_JOIN_NUM) -> Dict[int, int]:
        """
        Enumerate all combinations and build their edges

        Args:
            join_num: Maximum number of tables in one combination

        Returns:
            Number of combinations at each width (width -> count)
        """
        if join_num < 1:
            raise ValueError(f"join_num must be at least 1, got {join_num}")

        table_num = self.graph.table_num

        # Reset state
        self.join_num = join_num
        self.registry = CombinationRegistry(table_num)
        self.caches = [[{} for _ in range(join_num)] for _ in range(table_num)]
        self.table_ref_joined_tables = [{} for _ in range(table_num)]
        self.table_bridges = [{} for _ in range(table_num)]

        self._seed()
        logger.debug("seeded %d single-table combinations", len(self.registry))

        for width in range(2, join_num):
            added = self._grow(width)
            logger.debug("width %d: %d combinations", width, added)

        self._set_tables_ref_joined_tables()
        logger.debug("table extension: %d combinations registered", len(self.registry))

        self._set_combinations_ref_joined_tables()
        logger.debug("combination merge: %d combinations registered", len(self.registry))

        return self.counts()

    def counts(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for combination in self.registry:
            counts[combination.width] = counts.get(combination.width, 0) + 1
        return dict(sorted(counts.items()))

    def combination_ids(self, table: TableIndex, width: Optional[int] = None) -> List[CombinationId]:
        """
        Combinations cached under a table

        Args:
            table: Table index
            width: Only this width (default: every width)

        Returns:
            Combination ids in registration order
        """
        if width is not None:
            return list(self.caches[table][width - 1].values())

        return [
            combination_id
            for cache in self.caches[table]
            for combination_id in cache.values()
        ]

    def _seed(self) -> None:
        """Register one single-table combination per table"""
        for node in self.graph.nodes:
            self._derive(frozenset([node.index]))

    def _derive(self, members: FrozenSet[TableIndex]) -> CombinationId:
        """
        Get or create the canonical combination for a member set

        Extensions are a pure function of membership, so whichever
        derivation reaches the registry first is interchangeable with any
        later one.

        Args:
            members: Table indices of the combination

        Returns:
            Canonical combination id
        """
        extensions: Set[TableIndex] = set()
        for member in members:
            extensions |= self.graph.node(member).refs
        extensions -= members

        combination = JoinCombination(members=members, extensions=frozenset(extensions))
        combination_id, inserted = self.registry.get_or_insert(combination)

        if inserted:
            key = combination.fingerprint(self.graph.table_num)
            for member in members:
                self.caches[member][len(members) - 1][key] = combination_id

        return combination_id

    def _grow(self, width: int) -> int:
        """
        Create all combinations of a width from the previous width

        Explores both directions: adding a table to its neighbors' smaller
        combinations, and adding neighbors to the table's own.

        Args:
            width: Width of the combinations to create

        Returns:
            Number of new combinations
        """
        before = len(self.registry)

        for node in self.graph.nodes:
            for neighbor in sorted(node.neighbors):
                for combination_id in self.combination_ids(neighbor, width - 1):
                    combination = self.registry.get(combination_id)
                    # skip if containing the same table
                    if node.index in combination.members:
                        continue

                    self._derive(combination.members | {node.index})

            for combination_id in self.combination_ids(node.index, width - 1):
                combination = self.registry.get(combination_id)
                for neighbor in sorted(node.neighbors):
                    if neighbor in combination.members:
                        continue

                    self._derive(combination.members | {neighbor})

        return len(self.registry) - before

    def _set_tables_ref_joined_tables(self) -> None:
        """
        Record which combinations each table can be joined against

        Also registers full-width combinations, which growth stops short of.
        """
        for node in self.graph.nodes:
            ref_joined_tables = self.table_ref_joined_tables[node.index]

            for neighbor in sorted(node.neighbors):
                for width in range(1, self.join_num):
                    for combination_id in self.combination_ids(neighbor, width):
                        combination = self.registry.get(combination_id)
                        if node.index in combination.members:
                            continue

                        joined_id = self._derive(combination.members | {node.index})
                        ref_joined_tables[combination_id] = joined_id

                        if width == 1 and neighbor in node.refs:
                            self.table_bridges[node.index][neighbor] = joined_id

    def _set_combinations_ref_joined_tables(self) -> None:
        """Record which combinations each multi-table combination can merge with"""
        for combination_id in range(len(self.registry)):
            combination = self.registry.get(combination_id)
            if combination.width < 2 or combination.width >= self.join_num:
                continue

            room = self.join_num - combination.width
            for extension in sorted(combination.extensions):
                for width in range(1, room + 1):
                    for partner_id in self.combination_ids(extension, width):
                        partner = self.registry.get(partner_id)
                        if partner.members & combination.members:
                            continue

                        joined_id = self._derive(combination.members | partner.members)
                        combination.ref_joined_tables[partner_id] = joined_id


def enumerate_connected_subsets(graph: SchemaGraph, max_width: int) -> List[FrozenSet[TableIndex]]:
    """
    Enumerate connected table subsets by brute force

    Checks every k-subset level by level. Exponential in the table count;
    used to cross-check the planner on small schemas.

    Args:
        graph: SchemaGraph to enumerate
        max_width: Maximum subset size

    Returns:
        Connected subsets of size 1..max_width in level order
    """
    tables: Iterable[TableIndex] = range(graph.table_num)
    max_width = min(max_width, graph.table_num)

    subsets = []
    for level in range(1, max_width + 1):
        for subset_tuple in combinations(tables, level):
            subset = frozenset(subset_tuple)
            if graph.is_connected(subset):
                subsets.append(subset)

    return subsets
