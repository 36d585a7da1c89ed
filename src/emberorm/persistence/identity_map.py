"""
Identity map ensuring a single tracked instance per row within a session.
"""

from __future__ import annotations

from threading import RLock
from typing import Any, Dict, List, Optional, Tuple, Type

from ..core.model import Model

IdentityKey = Tuple[Type[Model], Any]


class IdentityMap:
    """
    Stores tracked model instances keyed by (model, primary key). Instances
    without a key (not yet inserted) are never stored.
    """

    def __init__(self) -> None:
        self._store: Dict[IdentityKey, Model] = {}
        self._lock = RLock()

    @staticmethod
    def make_key(model: Type[Model], pk: Any) -> IdentityKey:
        return (model, pk)

    def add(self, instance: Model) -> None:
        pk = instance.pk
        if pk is None:
            return
        with self._lock:
            self._store[self.make_key(instance.__class__, pk)] = instance

    def get(self, model: Type[Model], pk: Any) -> Optional[Model]:
        with self._lock:
            return self._store.get(self.make_key(model, pk))

    def remove(self, instance: Model) -> None:
        pk = instance.pk
        if pk is None:
            return
        key = self.make_key(instance.__class__, pk)
        with self._lock:
            if self._store.get(key) is instance:
                del self._store[key]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def values(self) -> List[Model]:
        with self._lock:
            return list(self._store.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, instance: Model) -> bool:
        pk = instance.pk
        if pk is None:
            return False
        with self._lock:
            return self._store.get(self.make_key(instance.__class__, pk)) is instance
