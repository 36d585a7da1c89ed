"""
Schema builder converting model metadata into DDL statements.
"""

from __future__ import annotations

from typing import Iterable, List

from ..core.model import Model
from ..core.relations import dependency_order
from ..dialects.base import Dialect
from ..utils import get_logger


class SchemaBuilder:
    """
    Produces dialect-specific SQL for schema manipulation.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self.logger = get_logger("schema.builder")

    def create_table_sql(self, model: type[Model]) -> str:
        pieces = self._render_columns(model) + self._render_foreign_keys(model)
        table_name = self.dialect.format_table(model._meta.table_name)
        return f"CREATE TABLE IF NOT EXISTS {table_name} ({', '.join(pieces)})"

    def create_all_sql(self, models: Iterable[type[Model]]) -> List[str]:
        """
        CREATE TABLE statements for ``models``, referenced tables first.
        """
        return [self.create_table_sql(model) for model in dependency_order(models)]

    def drop_table_sql(self, model: type[Model]) -> str:
        table_name = self.dialect.format_table(model._meta.table_name)
        self.logger.warning(
            "DROP TABLE generated for %s; confirm destructive change before applying.",
            table_name,
        )
        return f"DROP TABLE IF EXISTS {table_name}"

    def drop_all_sql(self, models: Iterable[type[Model]]) -> List[str]:
        """
        DROP TABLE statements for ``models``, dependent tables first.
        """
        return [self.drop_table_sql(model) for model in reversed(dependency_order(models))]

    def _render_columns(self, model: type[Model]) -> List[str]:
        pieces: List[str] = []
        for field in model._meta.get_fields():
            column_type = field.db_type
            if not column_type:
                raise ValueError(f"Field '{field.name}' missing db_type for schema generation.")
            column_def = self.dialect.render_column_definition(
                field.column_name(),
                column_type,
                nullable=field.nullable if not field.primary_key else False,
            )
            extras: List[str] = []
            if field.primary_key:
                extras.append("PRIMARY KEY")
            if field.unique and not field.primary_key:
                extras.append("UNIQUE")
            default_sql = self._default_clause(field)
            if default_sql:
                extras.append(default_sql)

            if extras:
                column_def = f"{column_def} {' '.join(extras)}"
            pieces.append(column_def)
        return pieces

    def _render_foreign_keys(self, model: type[Model]) -> List[str]:
        clauses: List[str] = []
        for fk in model._meta.foreign_keys:
            remote = fk.remote_model
            if remote is None or remote._meta.primary_key is None:
                raise ValueError(
                    f"Foreign key '{fk.name}' on '{model.__name__}' references an unresolved model."
                )
            clauses.append(
                self.dialect.render_foreign_key(
                    fk.column_name(),
                    remote._meta.table_name,
                    remote._meta.primary_key.column_name(),
                    fk.on_delete,
                )
            )
        return clauses

    def _default_clause(self, field) -> str | None:
        if field.db_default is not None:
            return f"DEFAULT {field.db_default}"
        if field.default is None or callable(field.default):
            return None
        value = field.default
        if isinstance(value, str):
            escaped = value.replace("'", "''")
            return f"DEFAULT '{escaped}'"
        if isinstance(value, bool):
            return f"DEFAULT {1 if value else 0}"
        return f"DEFAULT {value}"
