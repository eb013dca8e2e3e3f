"""
Materializer

Flattens the planner's index-based graph into the public Table and
JoinedTable records used by code emission.
"""

import logging
from typing import Dict, List, Tuple, Union

from constants import (
    DEFAULT_JOIN_NUM,
    CombinationId,
    JoinedTable,
    PlanResult,
    RefJoinedTable,
    RefTable,
    Table,
    TableDefinition,
)
from enumerator import JoinPlanner
from errors import InvariantViolationError
from join_graph import SchemaGraph

logger = logging.getLogger(__name__)


class Materializer:
    """
    Converts planner state into PlanResult records

    Width-1 combinations are plain tables and never become JoinedTable
    records. Any failed lookup aborts materialization.
    """

    def __init__(self, planner: JoinPlanner, definitions: List[TableDefinition]):
        if len(definitions) != planner.graph.table_num:
            raise ValueError(
                f"expected {planner.graph.table_num} table definitions, got {len(definitions)}"
            )

        for index, definition in enumerate(definitions):
            if planner.graph.index_of(definition.name) != index:
                raise ValueError(f"table definitions out of order at {definition.name}")

        self.planner = planner
        self.definitions = definitions
        self.tables: List[Table] = []
        self.joined_tables: Dict[CombinationId, JoinedTable] = {}

    def materialize(self) -> PlanResult:
        """
        Build the public records

        Returns:
            PlanResult with tables in input order and joined tables ordered
            by width, then member indices

        Raises:
            InvariantViolationError: If an edge points at a combination the
                registry does not know
        """
        registry = self.planner.registry

        self.tables = [
            Table(
                name=definition.name,
                columns=list(definition.columns),
                primary_key=list(definition.primary_key),
                foreign_keys=list(definition.foreign_keys)
            )
            for definition in self.definitions
        ]

        self.joined_tables = {}
        for width in range(2, self.planner.join_num + 1):
            for combination_id in sorted(registry.ids_by_width(width), key=self._sort_key):
                combination = registry.get(combination_id)
                self.joined_tables[combination_id] = JoinedTable(
                    fingerprint=combination.fingerprint(registry.table_num),
                    tables=[self.tables[index] for index in sorted(combination.members)]
                )

        for node in self.planner.graph.nodes:
            table = self.tables[node.index]
            table.ref_tables = self._table_ref_tables(node.index)
            table.ref_joined_tables = self._ref_joined_tables(
                self.planner.table_ref_joined_tables[node.index]
            )

        for combination_id, joined_table in self.joined_tables.items():
            joined_table.ref_tables = self._joined_table_ref_tables(combination_id)
            joined_table.ref_joined_tables = self._ref_joined_tables(
                registry.get(combination_id).ref_joined_tables
            )

        logger.debug(
            "materialized %d tables and %d joined tables",
            len(self.tables), len(self.joined_tables)
        )

        return PlanResult(
            tables=self.tables,
            joined_tables=list(self.joined_tables.values()),
            counts=self.planner.counts()
        )

    def _sort_key(self, combination_id: CombinationId) -> Tuple[int, List[int]]:
        members = self.planner.registry.get(combination_id).members
        return len(members), sorted(members)

    def _joined_table(self, combination_id: CombinationId) -> JoinedTable:
        joined_table = self.joined_tables.get(combination_id)
        if joined_table is None:
            raise InvariantViolationError(f"joined table not found: combination {combination_id}")
        return joined_table

    def _partner(self, combination_id: CombinationId) -> Union[Table, JoinedTable]:
        combination = self.planner.registry.get(combination_id)
        if combination.width == 1:
            index, = combination.members
            return self.tables[index]
        return self._joined_table(combination_id)

    def _table_ref_tables(self, index: int) -> List[RefTable]:
        """One RefTable per forward FK target, bridged to the two-table join"""
        node = self.planner.graph.node(index)
        bridges = self.planner.table_bridges[index]

        ref_tables = []
        for target in sorted(node.refs):
            joined_table = None
            if self.planner.join_num >= 2 and target != index:
                bridge_id = bridges.get(target)
                if bridge_id is None:
                    raise InvariantViolationError(
                        f"no joined table for reference {node.name} -> {self.tables[target].name}"
                    )
                joined_table = self._joined_table(bridge_id)

            ref_tables.append(RefTable(table=self.tables[target], joined_table=joined_table))

        return ref_tables

    def _joined_table_ref_tables(self, combination_id: CombinationId) -> List[RefTable]:
        """One RefTable per extension table while the combination has room to grow"""
        registry = self.planner.registry
        combination = registry.get(combination_id)
        if combination.width >= self.planner.join_num:
            return []

        ref_tables = []
        for extension in sorted(combination.extensions):
            joined_id = registry.lookup(combination.members | {extension})
            ref_tables.append(RefTable(
                table=self.tables[extension],
                joined_table=self._joined_table(joined_id)
            ))

        return ref_tables

    def _ref_joined_tables(self, edges: Dict[CombinationId, CombinationId]) -> List[RefJoinedTable]:
        ref_joined_tables = []
        for partner_id in sorted(edges, key=self._sort_key):
            ref_joined_tables.append(RefJoinedTable(
                table=self._partner(partner_id),
                joined_table=self._joined_table(edges[partner_id])
            ))

        return ref_joined_tables


def plan_joins(definitions: List[TableDefinition], join_num: int = DEFAULT_JOIN_NUM) -> PlanResult:
    """
    Plan every join combination of a schema

    Args:
        definitions: Tables in input order
        join_num: Maximum number of tables in one combination

    Returns:
        PlanResult ready for code emission

    Raises:
        SchemaError: If a foreign key references a missing table
    """
    graph = SchemaGraph.from_definitions(definitions)

    planner = JoinPlanner(graph)
    planner.plan(join_num)

    return Materializer(planner, definitions).materialize()
