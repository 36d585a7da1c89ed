"""
Query construction APIs for EmberORM.
"""

from .expressions import Q
from .queryset import MultipleResultsFound, NoResultFound, QueryResultError, QuerySet

__all__ = ["MultipleResultsFound", "NoResultFound", "Q", "QueryResultError", "QuerySet"]
