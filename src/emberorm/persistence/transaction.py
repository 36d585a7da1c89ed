"""
Transaction manager handling nested transactions, savepoints and explicit
transaction handles.
"""

from __future__ import annotations

import itertools
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, List, Optional

from ..adapters.base import DatabaseAdapter
from ..dialects.base import Dialect
from ..utils import get_logger


class TransactionError(RuntimeError):
    pass


ACTIVE = "active"
COMMITTED = "committed"
ROLLED_BACK = "rolled back"


class Transaction:
    """
    Handle for one level of an explicit transaction opened with
    ``Session.begin_transaction()``.

    The outermost handle owns the database transaction; nested handles own
    savepoints. A handle is resolved exactly once, by :meth:`commit` or
    :meth:`rollback`. Disposing an unresolved handle rolls it back.
    """

    def __init__(self, manager: "TransactionManager", savepoint: Optional[str]) -> None:
        self._manager = manager
        self.savepoint = savepoint
        self.status = ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    @property
    def is_nested(self) -> bool:
        return self.savepoint is not None

    def commit(self) -> None:
        self._manager.resolve(self, commit=True)

    def rollback(self) -> None:
        self._manager.resolve(self, commit=False)

    def dispose(self) -> None:
        if self.is_active:
            self.rollback()

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def __repr__(self) -> str:
        scope = f"savepoint {self.savepoint}" if self.savepoint else "outermost"
        return f"<Transaction {scope} {self.status}>"


@dataclass
class _Scope:
    savepoint: Optional[str]
    handle: Optional[Transaction] = None


class TransactionManager:
    """
    Coordinates begin/commit/rollback with optional savepoint support.
    """

    def __init__(self, adapter: DatabaseAdapter, dialect: Dialect) -> None:
        self.adapter = adapter
        self.dialect = dialect
        self._stack: List[_Scope] = []
        self._savepoint_counter = itertools.count(1)
        self.logger = get_logger("persistence.transaction")

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def active(self) -> bool:
        return bool(self._stack)

    def begin(self) -> _Scope:
        if self.depth == 0:
            self.adapter.begin()
            scope = _Scope(None)
            self._stack.append(scope)
            self.logger.debug("Transaction started")
            return scope

        if not self.dialect.capabilities.supports_savepoints:
            raise TransactionError("Nested transactions not supported by current dialect.")

        name = self._next_savepoint_name()
        self.adapter.execute(f"SAVEPOINT {name}")
        scope = _Scope(name)
        self._stack.append(scope)
        self.logger.debug("Savepoint %s created", name)
        return scope

    def commit(self) -> None:
        if self.depth == 0:
            raise TransactionError("No active transaction to commit.")

        savepoint_name = self._stack.pop().savepoint
        if savepoint_name is None:
            self.adapter.commit()
            self.logger.debug("Transaction committed")
            return

        self.adapter.execute(f"RELEASE SAVEPOINT {savepoint_name}")
        self.logger.debug("Savepoint %s released", savepoint_name)

    def rollback(self) -> None:
        if self.depth == 0:
            raise TransactionError("No active transaction to roll back.")

        savepoint_name = self._stack.pop().savepoint
        if savepoint_name is None:
            self.adapter.rollback()
            self.logger.debug("Transaction rolled back")
            return

        self.adapter.execute(f"ROLLBACK TO SAVEPOINT {savepoint_name}")
        self.adapter.execute(f"RELEASE SAVEPOINT {savepoint_name}")
        self.logger.debug("Rolled back to savepoint %s", savepoint_name)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        self.begin()
        try:
            yield
        except Exception:
            self.rollback()
            raise
        else:
            self.commit()

    # ------------------------------------------------------------------ #
    # Explicit handles
    # ------------------------------------------------------------------ #
    def begin_transaction(self) -> Transaction:
        scope = self.begin()
        handle = Transaction(self, scope.savepoint)
        scope.handle = handle
        return handle

    def resolve(self, handle: Transaction, *, commit: bool) -> None:
        if not handle.is_active:
            raise TransactionError(f"Transaction has already been {handle.status}.")
        if not self._stack or self._stack[-1].handle is not handle:
            raise TransactionError(
                "Only the innermost open transaction can be committed or rolled back."
            )
        if commit:
            self.commit()
            handle.status = COMMITTED
        else:
            self.rollback()
            handle.status = ROLLED_BACK

    def rollback_all(self) -> None:
        """
        Roll back every open scope, innermost first. Used when the owning
        session closes with transactions still open.
        """
        while self._stack:
            handle = self._stack[-1].handle
            self.rollback()
            if handle is not None:
                handle.status = ROLLED_BACK

    def _next_savepoint_name(self) -> str:
        return f"sp_{next(self._savepoint_counter)}"
