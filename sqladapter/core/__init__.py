"""
Core adapter infrastructure: configuration, logging, exceptions.
"""

from .config import DatabaseSettings, Settings, get_settings
from .exceptions import (
    AdapterError,
    TransactionError,
    BeginError,
    CommitError,
    RollbackError,
    FilteredPolicyError,
)

__all__ = [
    # Config
    "DatabaseSettings",
    "Settings",
    "get_settings",
    # Exceptions
    "AdapterError",
    "TransactionError",
    "BeginError",
    "CommitError",
    "RollbackError",
    "FilteredPolicyError",
]
