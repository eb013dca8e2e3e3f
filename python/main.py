"""
Main entry point for the Join Combination Planner

Command-line interface for planning join combinations of a DDL schema and
writing them, with their join SQL and accessors, to CSV.
"""

import argparse
import csv
import logging
import sys
from typing import Dict, List, Optional

from tqdm import tqdm

from constants import DEFAULT_JOIN_NUM, VERSION, GeneratorConfig, PlanResult, TableDefinition
from enumerator import JoinPlanner, enumerate_connected_subsets
from errors import SchemaError
from join_graph import SchemaGraph
from materializer import Materializer
from parser import parse_schema_file
from sql_generator import JoinQueryGenerator, describe_refs
from utils import format_subset

logger = logging.getLogger(__name__)

FIELDNAMES = ['kind', 'name', 'tables', 'query', 'ref_tables', 'ref_joined_tables']


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI

    Usage:
        python main.py schema.sql --output joins.csv --join-num 5
    """
    parser = argparse.ArgumentParser(
        description='Join Combination Planner',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Plan joins of up to 5 tables
  python main.py schema.sql

  # Pairs only, MySQL DDL
  python main.py schema.sql --join-num 2 --dialect mysql

  # Cross-check against brute-force enumeration
  python main.py schema.sql --verify --verbose
        """
    )

    parser.add_argument('schema_file', nargs='?', help='Input DDL file')
    parser.add_argument('--output', '-o', default='joins.csv',
                       help='Output CSV file (default: joins.csv)')
    parser.add_argument('--join-num', '-j', type=int, default=DEFAULT_JOIN_NUM,
                       help=f'Maximum number of tables in one join (default: {DEFAULT_JOIN_NUM})')
    parser.add_argument('--dialect', default='postgres',
                       help='SQL dialect (default: postgres)')
    parser.add_argument('--verify', action='store_true',
                       help='Cross-check planned joins against brute-force enumeration')
    parser.add_argument('--verbose', '-v', action='store_true',
                       help='Verbose output')
    parser.add_argument('--version', action='store_true',
                       help='Print version information and exit')

    args = parser.parse_args(argv)

    if args.version:
        print(f"Version: {VERSION}")
        return 0

    if not args.schema_file:
        parser.error('schema_file is required')

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = GeneratorConfig(
            schema_file=args.schema_file,
            output=args.output,
            join_num=args.join_num,
            dialect=args.dialect,
            verbose=args.verbose,
            verify=args.verify
        )
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    return run(config)


def run(config: GeneratorConfig) -> int:
    """
    Plan the schema in config and write the CSV output

    Args:
        config: Settings for this run

    Returns:
        Process exit code
    """
    try:
        definitions = parse_schema_file(config.schema_file, dialect=config.dialect)
        graph = SchemaGraph.from_definitions(definitions)
    except FileNotFoundError:
        print(f"ERROR: File not found: {config.schema_file}", file=sys.stderr)
        return 1
    except SchemaError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    planner = JoinPlanner(graph)
    planner.plan(config.join_num)

    if config.verify:
        mismatches = verify_plan(planner)
        if mismatches:
            for mismatch in mismatches:
                print(f"ERROR: {mismatch}", file=sys.stderr)
            return 1
        logger.info("planner output matches brute-force enumeration")

    result = Materializer(planner, definitions).materialize()

    try:
        rows = write_csv(result, definitions, config)
    except OSError as e:
        print(f"\nERROR: Failed to write output file: {e}", file=sys.stderr)
        return 1

    # Print summary
    print(f"\nTables: {len(result.tables)}")
    print(f"Joined tables: {len(result.joined_tables)}")
    for width, count in result.counts.items():
        if width > 1:
            print(f"  width {width}: {count}")
    print(f"Output written to: {config.output} ({rows} rows)")

    return 0


def verify_plan(planner: JoinPlanner) -> List[str]:
    """
    Compare planner combinations with brute-force enumeration

    Args:
        planner: Planner after plan()

    Returns:
        Human-readable mismatch descriptions (empty when consistent)
    """
    graph = planner.graph
    expected = set(enumerate_connected_subsets(graph, planner.join_num))
    planned = [combination.members for combination in planner.registry]

    def names(members) -> str:
        return format_subset(graph.node(index).name for index in members)

    mismatches = []
    for members in set(planned) - expected:
        mismatches.append(f"unexpected combination {names(members)}")
    for members in expected:
        if members not in planner.registry:
            mismatches.append(f"missing combination {names(members)}")
    if len(planned) != len(set(planned)):
        mismatches.append("duplicate combinations in registry")

    for node in graph.nodes:
        for partner_id in planner.table_ref_joined_tables[node.index]:
            partner = planner.registry.get(partner_id)
            if not graph.can_join({node.index}, partner.members):
                mismatches.append(
                    f"edge between unjoinable {names([node.index])} and {names(partner.members)}"
                )

    for combination in planner.registry:
        for partner_id in combination.ref_joined_tables:
            partner = planner.registry.get(partner_id)
            if not graph.can_join(combination.members, partner.members):
                mismatches.append(
                    f"edge between unjoinable {names(combination.members)} and {names(partner.members)}"
                )

    return sorted(mismatches)


def write_csv(result: PlanResult, definitions: List[TableDefinition], config: GeneratorConfig) -> int:
    """
    Write one row per table and per joined table

    Returns:
        Number of rows written
    """
    generator = JoinQueryGenerator(definitions, dialect=config.dialect)

    rows: List[Dict] = []
    for table in result.tables:
        rows.append({
            'kind': 'table',
            'name': table.name,
            'tables': format_subset([table.name]),
            'query': generator.generate_table_query(table),
            'ref_tables': '; '.join(ref.table.name for ref in table.ref_tables),
            'ref_joined_tables': '; '.join(describe_refs(table))
        })

    with open(config.output, 'w', newline='') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=FIELDNAMES)
        writer.writeheader()

        for row in rows:
            writer.writerow(row)

        progress_bar = tqdm(result.joined_tables, desc="Generating joins", disable=not config.verbose)

        for joined_table in progress_bar:
            query = generator.generate_join_query(joined_table)
            writer.writerow({
                'kind': 'joined_table',
                'name': joined_table.name,
                'tables': format_subset(joined_table.table_names),
                'query': query.replace('\n', ' '),
                'ref_tables': '; '.join(ref.table.name for ref in joined_table.ref_tables),
                'ref_joined_tables': '; '.join(describe_refs(joined_table))
            })

    return len(rows) + len(result.joined_tables)


if __name__ == '__main__':
    sys.exit(main())
