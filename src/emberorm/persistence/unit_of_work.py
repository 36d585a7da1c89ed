"""
Unit of Work turning tracked entries into INSERT, UPDATE and DELETE
statements and running them in foreign-key dependency order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Sequence, Tuple

from ..adapters.base import DatabaseAdapter
from ..core.model import Model
from ..core.relations import dependency_order
from ..dialects.base import Dialect
from ..utils import get_logger
from .errors import ConcurrencyConflictError
from .tracker import EntityState, TrackedEntry

Executor = Callable[[str, Sequence[Any]], Any]

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"


@dataclass
class PendingChange:
    entry: TrackedEntry
    operation: str

    @property
    def instance(self) -> Model:
        return self.entry.instance


class UnitOfWork:
    """
    Plans one statement per pending entry and executes the plan.

    Statements are rendered only when they run so that keys generated by
    earlier inserts flow into dependent rows. Every value written back to
    an instance (generated keys, synchronised foreign keys) is recorded and
    restored by :meth:`undo` when the save fails.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self.logger = get_logger("persistence.unit_of_work")
        self._writes: List[Tuple[Model, str, Any]] = []

    # ------------------------------------------------------------------ #
    # Planning
    # ------------------------------------------------------------------ #
    def plan(self, entries: Iterable[TrackedEntry]) -> List[PendingChange]:
        inserts: List[TrackedEntry] = []
        updates: List[TrackedEntry] = []
        deletes: List[TrackedEntry] = []
        for entry in entries:
            if entry.state is EntityState.ADDED:
                inserts.append(entry)
            elif entry.state is EntityState.MODIFIED and entry.modified_fields:
                updates.append(entry)
            elif entry.state is EntityState.DELETED and entry.persisted and entry.key is not None:
                deletes.append(entry)

        for entry in inserts + updates:
            entry.instance.full_clean()

        rank = {
            model: position
            for position, model in enumerate(
                dependency_order(entry.model for entry in inserts + updates + deletes)
            )
        }
        inserts.sort(key=lambda entry: rank[entry.model])
        deletes.sort(key=lambda entry: rank[entry.model], reverse=True)

        plan = [PendingChange(entry, INSERT) for entry in inserts]
        plan.extend(PendingChange(entry, UPDATE) for entry in updates)
        plan.extend(PendingChange(entry, DELETE) for entry in deletes)
        return plan

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def execute(
        self, plan: Sequence[PendingChange], execute: Executor, adapter: DatabaseAdapter
    ) -> int:
        """
        Run ``plan`` through ``execute`` and return the number of affected
        rows. On failure every value written to instances is restored and
        the error propagates.
        """
        self._writes = []
        affected = 0
        try:
            for change in plan:
                if change.operation == INSERT:
                    affected += self._insert(change.entry, execute, adapter)
                elif change.operation == UPDATE:
                    affected += self._update(change.entry, execute)
                else:
                    affected += self._delete(change.entry, execute)
        except Exception:
            self.undo()
            raise
        self._writes = []
        return affected

    def undo(self) -> None:
        for instance, name, value in reversed(self._writes):
            instance._field_values[name] = value
        self._writes = []

    # ------------------------------------------------------------------ #
    # Statement rendering
    # ------------------------------------------------------------------ #
    def build_insert(self, entry: TrackedEntry) -> Tuple[str, List[Any]]:
        instance = entry.instance
        self._sync_foreign_keys(entry)
        columns: List[str] = []
        params: List[Any] = []
        for field in instance._meta.get_fields():
            value = instance._field_values.get(field.name)
            if field.primary_key and value is None:
                continue
            columns.append(self.dialect.quote_identifier(field.column_name()))
            params.append(field.to_db(value))
        table = self.dialect.format_table(instance._meta.table_name)
        if not columns:
            return f"INSERT INTO {table} DEFAULT VALUES", params
        placeholders = ", ".join(self.dialect.parameter_placeholder() for _ in columns)
        return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})", params

    def build_update(self, entry: TrackedEntry) -> Tuple[str, List[Any]]:
        instance = entry.instance
        for name in self._sync_foreign_keys(entry):
            entry.modified_fields.add(name)
        assignments: List[str] = []
        params: List[Any] = []
        for field in instance._meta.get_fields():
            if field.primary_key or field.name not in entry.modified_fields:
                continue
            assignments.append(
                f"{self.dialect.quote_identifier(field.column_name())} = "
                f"{self.dialect.parameter_placeholder()}"
            )
            params.append(field.to_db(instance._field_values.get(field.name)))
        where_sql, where_params = self._match_clause(entry)
        table = self.dialect.format_table(instance._meta.table_name)
        return (
            f"UPDATE {table} SET {', '.join(assignments)} WHERE {where_sql}",
            params + where_params,
        )

    def build_delete(self, entry: TrackedEntry) -> Tuple[str, List[Any]]:
        where_sql, where_params = self._match_clause(entry)
        table = self.dialect.format_table(entry.instance._meta.table_name)
        return f"DELETE FROM {table} WHERE {where_sql}", where_params

    def _match_clause(self, entry: TrackedEntry) -> Tuple[str, List[Any]]:
        """
        Key predicate, extended with a null-safe comparison on every
        original column value when those values are known.
        """
        pk_field = entry.model._meta.primary_key
        if pk_field is None:
            raise ValueError(f"Model '{entry.model.__name__}' lacks a primary key.")
        clauses = [
            f"{self.dialect.quote_identifier(pk_field.column_name())} = "
            f"{self.dialect.parameter_placeholder()}"
        ]
        params: List[Any] = [pk_field.to_db(entry.key)]
        if entry.originals_known:
            for field in entry.model._meta.get_fields():
                if field.primary_key:
                    continue
                clauses.append(self.dialect.null_safe_equals(field.column_name()))
                params.append(field.to_db(entry.original_values.get(field.name)))
        return " AND ".join(clauses), params

    def _sync_foreign_keys(self, entry: TrackedEntry) -> List[str]:
        instance = entry.instance
        changed: List[str] = []
        for fk in instance._meta.foreign_keys:
            name = fk.require_name()
            previous = instance._field_values.get(name)
            if fk.sync_from_parent(instance):
                self._writes.append((instance, name, previous))
                changed.append(name)
        return changed

    # ------------------------------------------------------------------ #
    def _insert(self, entry: TrackedEntry, execute: Executor, adapter: DatabaseAdapter) -> int:
        sql, params = self.build_insert(entry)
        cursor = execute(sql, params)
        instance = entry.instance
        pk_field = instance._meta.primary_key
        if pk_field is not None and instance._field_values.get(pk_field.name) is None:
            generated = adapter.last_insert_id(
                cursor, instance._meta.table_name, pk_field.column_name()
            )
            self._writes.append((instance, pk_field.name, None))
            instance._field_values[pk_field.name] = pk_field.to_python(generated)
        self.logger.debug("Inserted %r", instance)
        return max(cursor.rowcount, 1)

    def _update(self, entry: TrackedEntry, execute: Executor) -> int:
        sql, params = self.build_update(entry)
        cursor = execute(sql, params)
        if cursor.rowcount == 0:
            raise ConcurrencyConflictError(entry.instance, UPDATE, sql=sql)
        return cursor.rowcount

    def _delete(self, entry: TrackedEntry, execute: Executor) -> int:
        sql, params = self.build_delete(entry)
        cursor = execute(sql, params)
        if cursor.rowcount == 0:
            raise ConcurrencyConflictError(entry.instance, DELETE, sql=sql)
        return cursor.rowcount
