"""
Asyncio facade over :class:`Session`.

Every operation that touches the database runs in a worker thread via
``asyncio.to_thread`` so the event loop is never blocked, and an
``asyncio.Lock`` keeps operations on one session strictly sequential.
Tracking operations (``add``, ``remove``, ...) never perform I/O and stay
synchronous.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Optional, Type, TypeVar

from ..adapters.base import DatabaseAdapter, Params
from ..core.model import Model
from ..query import QuerySet
from .session import Session
from .tracker import EntityState, TrackedEntry
from .transaction import Transaction

T = TypeVar("T")


class AsyncTransaction:
    """
    Awaitable counterpart of :class:`Transaction`; usable with ``async with``.
    """

    def __init__(self, owner: "AsyncSession", handle: Transaction) -> None:
        self._owner = owner
        self.handle = handle

    @property
    def is_active(self) -> bool:
        return self.handle.is_active

    async def commit(self) -> None:
        await self._owner._run(self.handle.commit)

    async def rollback(self) -> None:
        await self._owner._run(self.handle.rollback)

    async def dispose(self) -> None:
        if self.handle.is_active:
            await self.rollback()

    async def __aenter__(self) -> "AsyncTransaction":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()


class AsyncSession:
    def __init__(self, session: Session) -> None:
        self.session = session
        self._lock = asyncio.Lock()

    @classmethod
    async def open(cls, adapter: DatabaseAdapter, **kwargs: Any) -> "AsyncSession":
        """
        Construct the underlying session (which connects) off the event loop.
        """
        session = await asyncio.to_thread(Session, adapter, **kwargs)
        return cls(session)

    async def _run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        async with self._lock:
            return await asyncio.to_thread(func, *args, **kwargs)

    async def __aenter__(self) -> "AsyncSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Tracking ----------------------------------------------------------
    def add(self, instance: Model) -> TrackedEntry:
        return self.session.add(instance)

    def attach(self, instance: Model) -> TrackedEntry:
        return self.session.attach(instance)

    def update(self, instance: Model) -> TrackedEntry:
        return self.session.update(instance)

    def remove(self, instance: Model) -> TrackedEntry:
        return self.session.remove(instance)

    def entry(self, instance: Model) -> Optional[TrackedEntry]:
        return self.session.entry(instance)

    def get_state(self, instance: Model) -> EntityState:
        return self.session.get_state(instance)

    def set_state(self, instance: Model, state: EntityState) -> Optional[TrackedEntry]:
        return self.session.set_state(instance, state)

    def detect_changes(self) -> None:
        self.session.detect_changes()

    # I/O ---------------------------------------------------------------
    async def save_changes(self) -> int:
        return await self._run(self.session.save_changes)

    def query(self, model: Type[Model]) -> QuerySet:
        return self.session.query(model)

    async def all(self, queryset: QuerySet) -> List[Model]:
        return await self._run(queryset.all)

    async def first(self, queryset: QuerySet) -> Optional[Model]:
        return await self._run(queryset.first)

    async def single(self, queryset: QuerySet) -> Model:
        return await self._run(queryset.single)

    async def count(self, queryset: QuerySet) -> int:
        return await self._run(queryset.count)

    async def exists(self, queryset: QuerySet) -> bool:
        return await self._run(queryset.exists)

    async def get(self, model: Type[Model], **filters: Any) -> Optional[Model]:
        return await self._run(self.session.get, model, **filters)

    async def from_sql(
        self,
        model: Type[Model],
        sql: str,
        params: Optional[Params] = None,
        *,
        no_tracking: Optional[bool] = None,
    ) -> List[Model]:
        return await self._run(self.session.from_sql, model, sql, params, no_tracking=no_tracking)

    async def execute_sql(self, sql: str, params: Optional[Params] = None) -> int:
        return await self._run(self.session.execute_sql, sql, params)

    async def ensure_created(self, *models: Type[Model]) -> None:
        await self._run(self.session.ensure_created, *models)

    async def begin_transaction(self) -> AsyncTransaction:
        handle = await self._run(self.session.begin_transaction)
        return AsyncTransaction(self, handle)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["AsyncSession"]:
        transaction = await self.begin_transaction()
        try:
            yield self
        except Exception:
            if transaction.is_active:
                await transaction.rollback()
            raise
        else:
            if transaction.is_active:
                await transaction.commit()

    async def close(self) -> None:
        await self._run(self.session.close)
