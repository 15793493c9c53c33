from __future__ import annotations


class TabprepError(Exception):
    """Base class for preprocessing failures raised by tabprep."""


class InsufficientDataError(TabprepError, ValueError):
    """A requested split or stratum cannot be honored with the available rows."""


class SchemaMismatchError(TabprepError, ValueError):
    """A stage received a table without the columns (or dtypes) it expects."""


class DegenerateColumnError(TabprepError, ValueError):
    """A column is constant, all-null or too high-cardinality to score or encode."""


__all__ = [
    "TabprepError",
    "InsufficientDataError",
    "SchemaMismatchError",
    "DegenerateColumnError",
]
