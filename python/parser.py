"""
Schema Parser using SQLglot

This module handles DDL parsing and extraction of tables, columns, primary
keys and foreign keys. Foreign keys are read from inline column REFERENCES
constraints as well as table-level (optionally named) FOREIGN KEY clauses.
"""

import logging
from typing import List, Optional

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError

from constants import ColumnDefinition, ForeignKey, TableDefinition
from errors import SchemaError
from utils import read_schema_file

logger = logging.getLogger(__name__)


def parse_schema(sql: str, dialect: str = 'postgres') -> List[TableDefinition]:
    """
    Parse DDL and extract every CREATE TABLE statement

    Args:
        sql: DDL script (one or more statements)
        dialect: SQL dialect for SQLglot parsing

    Returns:
        TableDefinitions in declaration order

    Raises:
        SchemaError: If the script cannot be parsed or declares no tables
    """
    try:
        statements = sqlglot.parse(sql, read=dialect)
    except (ParseError, TokenError) as e:
        raise SchemaError(f"Failed to parse schema: {e}") from e

    definitions = []
    for statement in statements:
        if not isinstance(statement, exp.Create):
            continue

        kind = statement.args.get('kind') or ''
        if kind.upper() != 'TABLE':
            continue

        definition = _extract_table(statement, dialect)
        logger.debug(
            "parsed table %s: %d columns, %d foreign keys",
            definition.name, len(definition.columns), len(definition.foreign_keys)
        )
        definitions.append(definition)

    if not definitions:
        raise SchemaError("No CREATE TABLE statements found in schema")

    return definitions


def parse_schema_file(filepath: str, dialect: str = 'postgres') -> List[TableDefinition]:
    """Read and parse a DDL file"""
    return parse_schema(read_schema_file(filepath), dialect=dialect)


def _extract_table(create: exp.Create, dialect: str) -> TableDefinition:
    """
    Extract a table definition from a CREATE TABLE expression

    Args:
        create: SQLglot Create node
        dialect: Dialect used to render column types

    Returns:
        TableDefinition with columns, primary key and foreign keys
    """
    schema = create.this

    # CREATE TABLE ... AS SELECT has no column list
    if isinstance(schema, exp.Schema):
        table_node = schema.this
        elements = schema.expressions
    else:
        table_node = schema
        elements = []

    definition = TableDefinition(name=table_node.name)

    for element in elements:
        if isinstance(element, exp.ColumnDef):
            _extract_column(element, definition, dialect)
        else:
            _extract_table_constraint(element, definition)

    return definition


def _extract_column(column_def: exp.ColumnDef, definition: TableDefinition, dialect: str) -> None:
    """
    Add a column and its inline constraints to a table definition

    Handles "col INT PRIMARY KEY" and "col INT REFERENCES other(id)".
    """
    kind = column_def.args.get('kind')
    data_type = kind.sql(dialect=dialect) if kind else ''

    definition.columns.append(ColumnDefinition(name=column_def.name, data_type=data_type))

    if column_def.find(exp.PrimaryKeyColumnConstraint):
        definition.primary_key.append(column_def.name)

    for reference in column_def.find_all(exp.Reference):
        definition.foreign_keys.append(_foreign_key_from_reference(reference, [column_def.name]))


def _extract_table_constraint(element: exp.Expression, definition: TableDefinition) -> None:
    """
    Add table-level PRIMARY KEY and FOREIGN KEY constraints

    Named constraints ("CONSTRAINT fk FOREIGN KEY ...") wrap the key node,
    so the element is searched rather than matched directly.
    """
    for primary_key in element.find_all(exp.PrimaryKey):
        for part in primary_key.expressions:
            name = _identifier_name(part)
            if name and name not in definition.primary_key:
                definition.primary_key.append(name)

    for foreign_key in element.find_all(exp.ForeignKey):
        reference = foreign_key.args.get('reference')
        if reference is None:
            continue

        columns = [_identifier_name(column) for column in foreign_key.expressions]
        definition.foreign_keys.append(_foreign_key_from_reference(reference, columns))


def _foreign_key_from_reference(reference: exp.Reference, columns: List[str]) -> ForeignKey:
    """
    Build a ForeignKey from a REFERENCES clause

    Args:
        reference: SQLglot Reference node ("REFERENCES users(id)")
        columns: Referencing columns on the declaring table

    Returns:
        ForeignKey; ref_columns stays empty when the clause names no columns
    """
    target = reference.find(exp.Table)
    if target is None:
        raise SchemaError(f"REFERENCES clause without a table: {reference.sql()}")

    ref_columns = []
    if isinstance(reference.this, exp.Schema):
        ref_columns = [_identifier_name(column) for column in reference.this.expressions]

    return ForeignKey(columns=columns, ref_table=target.name, ref_columns=ref_columns)


def _identifier_name(node: exp.Expression) -> Optional[str]:
    """
    Name of the first identifier in a node

    Key column lists may hold bare identifiers, columns or ordered columns
    depending on the dialect.
    """
    if isinstance(node, exp.Identifier):
        return node.name

    identifier = node.find(exp.Identifier)
    if identifier is not None:
        return identifier.name

    return node.name or None
