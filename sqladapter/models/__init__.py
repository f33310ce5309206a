"""
Rule rows and database plumbing.
"""

from .rule import (
    FIELD_COUNT,
    FIELD_COLUMNS,
    PolicyRule,
    RuleFilter,
    build_rule_table,
    is_line_safe,
    quote_field,
    to_line,
    to_row,
)
from .database import (
    create_db_engine,
    engine_from_credentials,
    run_in_transaction,
    split_host_port,
)

__all__ = [
    # Rules
    "FIELD_COUNT",
    "FIELD_COLUMNS",
    "PolicyRule",
    "RuleFilter",
    "build_rule_table",
    "is_line_safe",
    "quote_field",
    "to_line",
    "to_row",
    # Database
    "create_db_engine",
    "engine_from_credentials",
    "run_in_transaction",
    "split_host_port",
]
