"""
Change-tracking and persistence errors.

Every error names the entity type and, where one exists, its key so that
failures can be diagnosed without inspecting tracker internals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .tracker import EntityState


def describe_instance(instance: Any) -> str:
    model_name = instance.__class__.__name__
    key = getattr(instance, "pk", None)
    if key is None:
        return f"{model_name} (unsaved)"
    return f"{model_name}(pk={key!r})"


class TrackingError(RuntimeError):
    """Base class for change-tracking failures."""

    def __init__(self, message: str, instance: Any = None) -> None:
        self.instance = instance
        self.entity_type = instance.__class__.__name__ if instance is not None else None
        self.key = getattr(instance, "pk", None) if instance is not None else None
        super().__init__(message)


class DuplicateTrackingError(TrackingError):
    def __init__(self, instance: Any) -> None:
        super().__init__(
            f"{describe_instance(instance)} is already tracked by this session", instance
        )


class NotTrackedError(TrackingError):
    def __init__(self, instance: Any, operation: str = "remove") -> None:
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {describe_instance(instance)}: it is not tracked by this session",
            instance,
        )


class InvalidTransitionError(TrackingError):
    def __init__(self, instance: Any, current: "EntityState", requested: "EntityState") -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Illegal state change for {describe_instance(instance)}: "
            f"{current.value} -> {requested.value}",
            instance,
        )


class ConcurrencyConflictError(TrackingError):
    """
    The row behind a tracked entry was changed or deleted by someone else
    since it was loaded. Raised by ``save_changes()``; no retry is attempted.
    """

    def __init__(self, instance: Any, operation: str, *, sql: Optional[str] = None) -> None:
        self.operation = operation
        self.sql = sql
        super().__init__(
            f"Concurrency conflict on {operation} of {describe_instance(instance)}: "
            "the row was modified or deleted since it was loaded",
            instance,
        )
