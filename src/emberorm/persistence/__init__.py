"""
Persistence layer components: sessions, change tracking, unit of work and
transactions.
"""

from .aio import AsyncSession, AsyncTransaction
from .errors import (
    ConcurrencyConflictError,
    DuplicateTrackingError,
    InvalidTransitionError,
    NotTrackedError,
    TrackingError,
)
from .factory import SessionFactory
from .identity_map import IdentityMap
from .session import Session
from .tracker import LEGAL_TRANSITIONS, ChangeTracker, EntityState, TrackedEntry
from .transaction import Transaction, TransactionError, TransactionManager
from .unit_of_work import UnitOfWork

__all__ = [
    "AsyncSession",
    "AsyncTransaction",
    "ChangeTracker",
    "ConcurrencyConflictError",
    "DuplicateTrackingError",
    "EntityState",
    "IdentityMap",
    "InvalidTransitionError",
    "LEGAL_TRANSITIONS",
    "NotTrackedError",
    "Session",
    "SessionFactory",
    "TrackedEntry",
    "TrackingError",
    "Transaction",
    "TransactionError",
    "TransactionManager",
    "UnitOfWork",
]
