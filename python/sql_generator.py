"""
Join Query Generator

Generates SQL queries for planned joined tables with proper JOIN syntax,
and lists the join accessors each record exposes.
"""

import logging
from typing import Dict, List, Optional, Set, Union

from sqlglot import exp

from constants import ForeignKey, JoinedTable, NextTable, Table, TableDefinition

logger = logging.getLogger(__name__)


class JoinQueryGenerator:
    """
    Generates SQL queries for joined tables

    ON conditions come from the declared foreign key column pairs.
    """

    def __init__(self, definitions: List[TableDefinition], dialect: str = 'postgres'):
        """
        Initialize SQL generator

        Args:
            definitions: Parsed table definitions
            dialect: SQL dialect used to quote identifiers
        """
        self.definitions: Dict[str, TableDefinition] = {d.name: d for d in definitions}
        self.dialect = dialect

    def generate_table_query(self, table: Table) -> str:
        """Generate query for single table"""
        return f"SELECT * FROM {self._render_table(table.name)};"

    def generate_join_query(self, joined_table: JoinedTable) -> str:
        """
        Generate JOIN query for a joined table

        Builds the JOIN tree from the alphabetically first member by
        following foreign keys in either direction.

        Args:
            joined_table: Joined table to render

        Returns:
            SQL query with JOIN syntax
        """
        names = sorted(joined_table.table_names)

        from_clause = self._render_table(names[0])
        added_tables = {names[0]}
        remaining_tables = set(names[1:])

        while remaining_tables:
            next_info = self._find_next_table_for_join_tree(added_tables, remaining_tables)

            if not next_info:
                raise ValueError(f"tables are not connected: {joined_table.name}")

            from_clause += f"\nJOIN {self._render_table(next_info.table)}"

            if next_info.join_pred:
                from_clause += f" ON {next_info.join_pred}"

            added_tables.add(next_info.table)
            remaining_tables.remove(next_info.table)

        return f"SELECT * FROM {from_clause};"

    def _find_next_table_for_join_tree(
        self,
        added_tables: Set[str],
        remaining_tables: Set[str]
    ) -> Optional[NextTable]:
        """
        Find next table to add to JOIN tree

        Args:
            added_tables: Tables already in JOIN tree
            remaining_tables: Tables not yet added

        Returns:
            NextTable with table and join predicate, or None if none found.
            A table linked only by foreign keys whose columns cannot be
            resolved comes back with join_pred None.
        """
        unresolved = None

        for table in sorted(remaining_tables):
            for added in sorted(added_tables):
                predicates = self._find_join_predicates(added, table)

                if predicates:
                    return NextTable(table=table, join_pred=predicates[0])

                if unresolved is None and self._has_foreign_key(added, table):
                    unresolved = NextTable(table=table, join_pred=None)

        if unresolved is not None:
            logger.warning("no join columns for %s, emitting JOIN without ON", unresolved.table)

        return unresolved

    def _has_foreign_key(self, left: str, right: str) -> bool:
        return any(
            foreign_key.ref_table == parent
            for child, parent in ((left, right), (right, left))
            for foreign_key in self.definitions[child].foreign_keys
        )

    def _find_join_predicates(self, left: str, right: str) -> List[str]:
        """
        Find all join predicates between two tables

        Args:
            left: Table already in the JOIN tree
            right: Table being added

        Returns:
            Predicate strings, foreign keys declared by left first
        """
        predicates = []

        for child, parent in ((left, right), (right, left)):
            for foreign_key in self.definitions[child].foreign_keys:
                if foreign_key.ref_table != parent:
                    continue

                predicate = self._render_foreign_key(child, foreign_key)
                if predicate is not None:
                    predicates.append(predicate)

        return predicates

    def _render_foreign_key(self, child: str, foreign_key: ForeignKey) -> Optional[str]:
        """
        Render "child.col = parent.col" for every column pair of a foreign key

        Returns None when the referenced columns cannot be determined.
        """
        parent = foreign_key.ref_table
        ref_columns = foreign_key.ref_columns or self.definitions[parent].primary_key

        if not foreign_key.columns or len(foreign_key.columns) != len(ref_columns):
            return None

        conditions = [
            f"{self._render_column(child, column)} = {self._render_column(parent, ref_column)}"
            for column, ref_column in zip(foreign_key.columns, ref_columns)
        ]

        return ' AND '.join(conditions)

    def _render_table(self, name: str) -> str:
        return exp.to_identifier(name).sql(dialect=self.dialect)

    def _render_column(self, table: str, column: str) -> str:
        return exp.column(column, table=table).sql(dialect=self.dialect)


def accessor_name(partner: Union[Table, JoinedTable]) -> str:
    """
    Name of the generated accessor that joins a partner

    Example: Table('users') => "join_users"
    """
    return f"join_{partner.name}"


def describe_refs(record: Union[Table, JoinedTable]) -> List[str]:
    """
    List the join accessors of a record as "accessor -> result" strings

    A forward reference and the matching single-table partner produce the
    same accessor, so duplicates are dropped.
    """
    accessors = []

    for ref_table in record.ref_tables:
        if ref_table.joined_table is not None:
            accessors.append(f"{accessor_name(ref_table.table)} -> {ref_table.joined_table.name}")

    for ref_joined_table in record.ref_joined_tables:
        accessors.append(
            f"{accessor_name(ref_joined_table.table)} -> {ref_joined_table.joined_table.name}"
        )

    return list(dict.fromkeys(accessors))
