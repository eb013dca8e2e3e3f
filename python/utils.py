"""
Utility functions for join planning

Includes schema file I/O and formatting helpers
"""

from typing import Iterable


def read_schema_file(filepath: str) -> str:
    """
    Read a DDL file

    Args:
        filepath: Path to input file

    Returns:
        File content
    """
    with open(filepath, 'r') as f:
        return f.read()


def format_subset(subset: Iterable[str]) -> str:
    """
    Format subset as {t1, t2, t3}

    Args:
        subset: Table names

    Returns:
        Formatted string
    """
    return '{' + ', '.join(sorted(subset)) + '}'


def joined_table_name(subset: Iterable[str]) -> str:
    """
    Name of the joined type for a set of tables

    Example: {'users', 'messages'} => "messages_users"
    """
    return '_'.join(sorted(subset))


def generate_canonical_key(subset: Iterable[str]) -> str:
    """
    Generate sorted, canonical key for subset

    Args:
        subset: Table names

    Returns:
        Canonical key: "t1|||t2|||t3"
    """
    return '|||'.join(sorted(subset))
