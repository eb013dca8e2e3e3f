"""
Errors raised during join planning
"""


class SchemaError(ValueError):
    """
    Schema cannot be planned as given

    Raised for unparsable DDL, duplicate table names and foreign keys
    that reference a table missing from the input.
    """


class InvariantViolationError(RuntimeError):
    """
    Planner state is internally inconsistent

    Indicates that the registry and the per-table width caches have
    desynchronized. This is a defect in the planner, not a user error.
    """
