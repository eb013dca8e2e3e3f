"""
Data structures for join combination planning

This module defines all dataclasses and type definitions used throughout
the planner: the parsed schema records, the planner's internal graph nodes
and the public Table/JoinedTable records handed to code emission.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Union

from utils import joined_table_name


VERSION = "0.3.0"

DEFAULT_JOIN_NUM = 5

# Marks a combination whose fingerprint has not been derived yet
UNCOMPUTED = -1

# 2^63 - 1, keeps every multiplier inside a signed 64-bit integer
FINGERPRINT_MODULUS = (1 << 63) - 1


# Type aliases for clarity
TableIndex = int
CombinationId = int  # Position in the registry arena
Fingerprint = int
EdgeKey = str  # Sorted pair: "t1|||t2"


@dataclass
class ColumnDefinition:
    """
    Column declared in a CREATE TABLE statement

    Example: "id BIGINT PRIMARY KEY" => ColumnDefinition('id', 'BIGINT')
    """
    name: str
    data_type: str


@dataclass
class ForeignKey:
    """
    Foreign key declared by a table

    Attributes:
        columns: Referencing columns on the declaring table
        ref_table: Name of the referenced table
        ref_columns: Referenced columns (empty means the target's primary key)
    """
    columns: List[str]
    ref_table: str
    ref_columns: List[str] = field(default_factory=list)


@dataclass
class TableDefinition:
    """
    Table discovered from the schema source

    Attributes:
        name: Table name as written in the DDL
        columns: Declared columns in order
        primary_key: Primary key columns (may be empty)
        foreign_keys: Forward foreign key references
    """
    name: str
    columns: List[ColumnDefinition] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    foreign_keys: List[ForeignKey] = field(default_factory=list)


@dataclass(frozen=True)
class TableNode:
    """
    Table plus its foreign key edges, indexed for one planning run

    Attributes:
        index: Position of the table in the input list
        name: Table name
        refs: Tables this table's foreign keys point at
        back_refs: Tables whose foreign keys point at this table
    """
    index: TableIndex
    name: str
    refs: FrozenSet[TableIndex]
    back_refs: FrozenSet[TableIndex]

    @property
    def neighbors(self) -> FrozenSet[TableIndex]:
        """Undirected FK neighbors, excluding the table itself"""
        return (self.refs | self.back_refs) - {self.index}


@dataclass(eq=False)
class JoinCombination:
    """
    Connected, duplicate-free set of tables treated as one joinable unit

    Attributes:
        members: Table indices in the combination
        extensions: Forward FK targets of any member that are not members
        ref_joined_tables: Outgoing edges, partner id -> resulting combination id
    """
    members: FrozenSet[TableIndex]
    extensions: FrozenSet[TableIndex]
    ref_joined_tables: Dict[CombinationId, CombinationId] = field(default_factory=dict, repr=False)
    _fingerprint: Fingerprint = field(default=UNCOMPUTED, repr=False)

    @property
    def width(self) -> int:
        return len(self.members)

    def fingerprint(self, table_num: int) -> Fingerprint:
        """
        Fingerprint of the member set, computed once and cached

        Args:
            table_num: Total number of tables in the planning run

        Returns:
            Deterministic integer key for the member set
        """
        if self._fingerprint != UNCOMPUTED:
            return self._fingerprint

        # Import here to avoid circular dependencies
        from registry import fingerprint

        self._fingerprint = fingerprint(self.members, table_num)
        return self._fingerprint


@dataclass(eq=False)
class Table:
    """
    Public table record consumed by code emission

    Attributes:
        name: Table name
        columns: Declared columns
        primary_key: Primary key columns
        foreign_keys: Declared foreign keys
        ref_tables: Direct FK targets with their two-table join
        ref_joined_tables: Combinations this table can be joined against
    """
    name: str
    columns: List[ColumnDefinition] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    foreign_keys: List[ForeignKey] = field(default_factory=list)
    ref_tables: List['RefTable'] = field(default_factory=list, repr=False)
    ref_joined_tables: List['RefJoinedTable'] = field(default_factory=list, repr=False)


@dataclass(eq=False)
class JoinedTable:
    """
    Public record for a combination of two or more tables

    Attributes:
        fingerprint: Registry key of the member set
        tables: Member tables ordered by input position
        ref_tables: Tables reachable by one more forward FK join
        ref_joined_tables: Combinations this one can be merged with
    """
    fingerprint: Fingerprint
    tables: List[Table]
    ref_tables: List['RefTable'] = field(default_factory=list, repr=False)
    ref_joined_tables: List['RefJoinedTable'] = field(default_factory=list, repr=False)

    @property
    def name(self) -> str:
        return joined_table_name(table.name for table in self.tables)

    @property
    def table_names(self) -> List[str]:
        return [table.name for table in self.tables]


@dataclass(eq=False)
class RefTable:
    """
    Forward FK reference plus the combination that joining it produces

    joined_table is None when no join can be built (self reference,
    join width of one, or a combination already at full width).
    """
    table: Table
    joined_table: Optional[JoinedTable] = None


@dataclass(eq=False)
class RefJoinedTable:
    """
    Partner that can be joined and the larger combination it produces

    Example: users -> (messages, messages_users)
    """
    table: Union[Table, JoinedTable]
    joined_table: JoinedTable


@dataclass
class NextTable:
    """
    Next table to add to JOIN tree with its join predicate

    Used during SQL generation to build JOIN tree by following FK edges
    """
    table: str
    join_pred: Optional[str]


@dataclass
class PlanResult:
    """
    Complete planning result for a schema

    Attributes:
        tables: All tables in input order
        joined_tables: Combinations of width >= 2
        counts: Number of combinations at each width (width -> count)
    """
    tables: List[Table]
    joined_tables: List[JoinedTable]
    counts: Dict[int, int]


@dataclass
class GeneratorConfig:
    """
    Settings for one generation run, built from the command line

    Attributes:
        schema_file: Path of the DDL file to read
        output: Path of the CSV file to write
        join_num: Maximum number of tables in one combination
        dialect: SQL dialect for parsing and rendering
        verbose: Enable debug logging
        verify: Cross-check planner output against brute-force enumeration
    """
    schema_file: str
    output: str = 'joins.csv'
    join_num: int = DEFAULT_JOIN_NUM
    dialect: str = 'postgres'
    verbose: bool = False
    verify: bool = False

    def __post_init__(self):
        if self.join_num < 1:
            raise ValueError(f"join_num must be at least 1, got {self.join_num}")
