"""
Repository layer for database access.
"""

from .rule import RuleRepository, field_conditions

__all__ = [
    "RuleRepository",
    "field_conditions",
]
