"""
Session management coordinating the adapter, change tracker, unit of work
and transaction manager.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Generator, List, Optional, Sequence, Type

from ..adapters.base import ConnectionConfig, DatabaseAdapter, Params
from ..core.model import Model
from ..core.registry import describe
from ..dialects.base import Dialect
from ..dialects.sqlite import SQLiteDialect
from ..query import QuerySet
from ..schema import SchemaBuilder
from ..security.redaction import redact_params
from ..utils import get_logger, time_call
from .errors import InvalidTransitionError, NotTrackedError
from .tracker import ChangeTracker, EntityState, TrackedEntry
from .transaction import Transaction, TransactionManager
from .unit_of_work import DELETE, INSERT, UPDATE, UnitOfWork


class Session:
    """
    Unit-of-work scope over one database connection.

    A session tracks the instances it adds, attaches or loads, detects how
    they changed, and writes those changes atomically in
    :meth:`save_changes`. It is meant for a single caller at a time; use one
    session per logical unit of work.
    """

    def __init__(
        self,
        adapter: DatabaseAdapter,
        *,
        connection_config: Optional[ConnectionConfig] = None,
        dsn: Optional[str] = None,
        no_tracking: bool = False,
    ) -> None:
        self.adapter = adapter
        self.no_tracking = no_tracking
        self.dialect: Dialect = adapter.dialect if hasattr(adapter, "dialect") else SQLiteDialect()
        if connection_config is not None and dsn is not None:
            raise ValueError("Provide either connection_config or dsn, not both.")
        if connection_config is None:
            connection_config = (
                ConnectionConfig.from_dsn(dsn) if dsn else ConnectionConfig(url="sqlite:///:memory:")
            )
        self.connection_config = connection_config
        self.tracker = ChangeTracker()
        self.unit_of_work = UnitOfWork(self.dialect)
        self.transaction_manager = TransactionManager(adapter, self.dialect)
        self.logger = get_logger("persistence.session")
        self._closed = False
        self.adapter.connect(self.connection_config)

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Roll back any transaction left open, forget every tracked instance
        and release the connection. Safe to call more than once.
        """
        if self._closed:
            return
        try:
            if self.transaction_manager.active:
                self.logger.warning(
                    "Session closed with %d open transaction scope(s); rolling back",
                    self.transaction_manager.depth,
                )
                self.transaction_manager.rollback_all()
        finally:
            self.tracker.clear()
            self.adapter.close()
            self._closed = True

    # ------------------------------------------------------------------ #
    # Tracking
    # ------------------------------------------------------------------ #
    def add(self, instance: Model) -> TrackedEntry:
        """
        Track ``instance`` as ADDED, together with any untracked instances
        in its loaded collection navigations.
        """
        describe(type(instance))
        return self.tracker.track_graph(instance, EntityState.ADDED)

    def attach(self, instance: Model) -> TrackedEntry:
        """
        Track a detached instance as UNCHANGED, assuming its current values
        match the stored row. Instances without a key are tracked as ADDED.
        """
        describe(type(instance))
        state = EntityState.UNCHANGED if instance.pk is not None else EntityState.ADDED
        return self.tracker.track_graph(instance, state)

    def update(self, instance: Model) -> TrackedEntry:
        """
        Mark the whole instance as modified. Every non-key column is written
        on the next save and the row is matched by key only.
        """
        describe(type(instance))
        entry = self.tracker.entry(instance)
        if entry is None:
            if instance.pk is None:
                return self.tracker.track_graph(instance, EntityState.ADDED)
            return self.tracker.track_graph(instance, EntityState.MODIFIED)
        if entry.state is EntityState.ADDED:
            return entry
        if entry.state is EntityState.DELETED:
            raise InvalidTransitionError(instance, entry.state, EntityState.MODIFIED)
        entry.mark_all_modified()
        entry.originals_known = False
        entry.state = EntityState.MODIFIED
        return entry

    def remove(self, instance: Model) -> TrackedEntry:
        """
        Schedule a tracked instance for deletion. Removing an ADDED instance
        cancels its insert.
        """
        entry = self.tracker.entry(instance)
        if entry is None:
            raise NotTrackedError(instance, "remove")
        self.tracker.set_state(instance, EntityState.DELETED)
        return entry

    def entry(self, instance: Model) -> Optional[TrackedEntry]:
        """
        Return the tracked entry for ``instance`` with its state brought up
        to date, or None when the instance is not tracked.
        """
        entry = self.tracker.entry(instance)
        if entry is not None:
            self.tracker.detect_entry(entry)
        return entry

    def get_state(self, instance: Model) -> EntityState:
        entry = self.entry(instance)
        return entry.state if entry else EntityState.DETACHED

    def set_state(self, instance: Model, state: EntityState) -> Optional[TrackedEntry]:
        if state is not EntityState.DETACHED:
            describe(type(instance))
        return self.tracker.set_state(instance, state)

    def detect_changes(self) -> None:
        self.tracker.detect_changes()

    # ------------------------------------------------------------------ #
    # Saving
    # ------------------------------------------------------------------ #
    def save_changes(self) -> int:
        """
        Write every pending change in one transaction scope and return the
        number of affected rows.

        On failure the scope is rolled back, keys generated during the
        attempt are cleared, tracked states are left as they were and the
        error propagates.
        """
        self.tracker.detect_changes()
        plan = self.unit_of_work.plan(self.tracker.entries())
        if not plan:
            self.tracker.accept_all_changes()
            return 0

        counts = {INSERT: 0, UPDATE: 0, DELETE: 0}
        for change in plan:
            counts[change.operation] += 1
        with time_call("session.save_changes", self.logger, threshold_ms=500):
            with self.transaction_manager.transaction():
                affected = self.unit_of_work.execute(plan, self.execute, self.adapter)
        self.tracker.accept_all_changes()
        self.logger.debug(
            "Saved changes: %d inserted, %d updated, %d deleted",
            counts[INSERT],
            counts[UPDATE],
            counts[DELETE],
        )
        return affected

    # ------------------------------------------------------------------ #
    # Querying
    # ------------------------------------------------------------------ #
    def query(self, model: Type[Model]) -> QuerySet:
        describe(model)
        return QuerySet(model, self)

    def get(self, model: Type[Model], **filters: Any) -> Optional[Model]:
        if len(filters) != 1:
            raise ValueError("Session.get currently supports exactly one filter.")
        field_name, value = next(iter(filters.items()))
        pk_field = model._meta.primary_key
        if not self.no_tracking and pk_field is not None and field_name in ("pk", pk_field.name):
            cached = self.tracker.find(model, value)
            if cached is not None:
                return cached
        return self.query(model).filter(**filters).first()

    def from_sql(
        self,
        model: Type[Model],
        sql: str,
        params: Optional[Params] = None,
        *,
        no_tracking: Optional[bool] = None,
    ) -> List[Model]:
        """
        Run raw SELECT text with bound parameters and materialize the rows as
        ``model`` instances. The result set must contain every mapped column.
        """
        describe(model)
        tracked = not (self.no_tracking if no_tracking is None else no_tracking)
        cursor = self.execute(sql, params)
        return [
            self._materialize(model, QuerySet._row_to_dict(cursor, row), tracked=tracked)
            for row in cursor.fetchall()
        ]

    def execute_sql(self, sql: str, params: Optional[Params] = None) -> int:
        """
        Run a raw non-query statement with bound parameters and return the
        number of affected rows.
        """
        cursor = self.execute(sql, params)
        return max(cursor.rowcount, 0)

    def execute(self, sql: str, params: Optional[Params] = None) -> Any:
        bound = self._bind(params)
        with time_call(
            "session.execute",
            self.logger,
            sql=sql,
            params=redact_params(bound),
            threshold_ms=200,
        ):
            return self.adapter.execute(sql, bound)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin_transaction(self) -> Transaction:
        """
        Open an explicit transaction (a savepoint when one is already open).
        The returned handle must be committed or rolled back; disposing it
        unresolved rolls it back.
        """
        return self.transaction_manager.begin_transaction()

    @contextmanager
    def transaction(self) -> Generator["Session", None, None]:
        """
        Run the block in a transaction: commit on success, roll back and
        re-raise on error.
        """
        handle = self.begin_transaction()
        try:
            yield self
        except Exception:
            if handle.is_active:
                handle.rollback()
            raise
        else:
            if handle.is_active:
                handle.commit()

    # ------------------------------------------------------------------ #
    # Schema
    # ------------------------------------------------------------------ #
    def ensure_created(self, *models: Type[Model]) -> None:
        """
        Create the tables for ``models`` if they do not exist, parents first.
        """
        for model in models:
            describe(model)
        builder = SchemaBuilder(self.dialect)
        for statement in builder.create_all_sql(models):
            self.execute(statement)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _bind(params: Optional[Params]) -> Params:
        if params is None:
            return ()
        if isinstance(params, Mapping):
            return dict(params)
        if isinstance(params, Sequence) and not isinstance(params, (str, bytes)):
            return list(params)
        raise TypeError(
            f"SQL parameters must be a sequence or a mapping, not {type(params).__name__}"
        )

    def _materialize(
        self, model: Type[Model], row: Mapping[str, Any], *, tracked: bool = True
    ) -> Model:
        values = {}
        for field in model._meta.get_fields():
            column = field.column_name()
            if column not in row:
                raise ValueError(
                    f"Result set for '{model.__name__}' is missing column '{column}'"
                )
            values[field.require_name()] = field.from_db(row[column])

        pk_field = model._meta.primary_key
        if tracked and pk_field is not None:
            existing = self.tracker.find(model, values[pk_field.require_name()])
            if existing is not None:
                return existing

        instance = model(**values)
        if tracked:
            self.tracker.track(instance, EntityState.UNCHANGED)
        return instance
