"""
EmberORM public package initialization.

This module exposes the primary public APIs: model declaration, sessions
with change tracking, queries, transactions and configuration.
"""

from .adapters import BackendExecutionError, ConnectionConfig, SQLiteAdapter  # noqa: F401
from .config import ConfigurationSource  # noqa: F401
from .core.model import Model, ModelConfigurationError  # noqa: F401
from .core.fields import (
    AutoField,
    BooleanField,
    DecimalField,
    FloatField,
    IntegerField,
    StringField,
)  # noqa: F401
from .core.registry import UnmappedTypeError, describe  # noqa: F401
from .core.relations import ForeignKey  # noqa: F401
from .persistence import (  # noqa: F401
    AsyncSession,
    ConcurrencyConflictError,
    DuplicateTrackingError,
    EntityState,
    InvalidTransitionError,
    NotTrackedError,
    Session,
    SessionFactory,
    Transaction,
    TransactionError,
)
from .query import Q, QuerySet  # noqa: F401
from .schema import SchemaBuilder  # noqa: F401
from .validation import ValidationError  # noqa: F401

__all__ = [
    "Model",
    "AutoField",
    "BooleanField",
    "DecimalField",
    "FloatField",
    "IntegerField",
    "StringField",
    "ForeignKey",
    "ModelConfigurationError",
    "UnmappedTypeError",
    "describe",
    "Session",
    "AsyncSession",
    "SessionFactory",
    "EntityState",
    "Transaction",
    "TransactionError",
    "DuplicateTrackingError",
    "InvalidTransitionError",
    "NotTrackedError",
    "ConcurrencyConflictError",
    "BackendExecutionError",
    "ConnectionConfig",
    "ConfigurationSource",
    "SQLiteAdapter",
    "QuerySet",
    "Q",
    "SchemaBuilder",
    "ValidationError",
]
