"""
SQL storage adapter for access-control policy rules.

Stores rules as (ptype, v0..v5) rows in one table and loads them back into
a casbin model. Every operation is a single transaction.
"""

from .adapter import DEFAULT_TABLE_NAME, SQLAdapter
from .core.exceptions import (
    AdapterError,
    BeginError,
    CommitError,
    FilteredPolicyError,
    RollbackError,
    TransactionError,
)
from .models.rule import PolicyRule, RuleFilter, to_line, to_row

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TABLE_NAME",
    "SQLAdapter",
    "PolicyRule",
    "RuleFilter",
    "to_line",
    "to_row",
    "AdapterError",
    "TransactionError",
    "BeginError",
    "CommitError",
    "RollbackError",
    "FilteredPolicyError",
]
