"""
SQL compilation utilities translating expressions into SQL strings.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from ..core.fields import Field
from ..dialects.base import Dialect
from .expressions import Q

if TYPE_CHECKING:
    from ..core.model import Model


LOOKUP_OPERATORS = {
    "exact": "=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
}

# Pattern lookups; LIKE matching follows the backend's collation.
LIKE_PATTERNS = {
    "contains": "%{}%",
    "startswith": "{}%",
    "endswith": "%{}",
}

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )


class SQLCompiler:
    """
    Compile QuerySet state into SQL statements and parameters.
    """

    def __init__(
        self,
        model: type["Model"],
        dialect: Dialect,
        where: Q | None = None,
        ordering: tuple[str, ...] = (),
        limit: int | None = None,
        offset: int | None = None,
    ) -> None:
        self.model = model
        self.dialect = dialect
        self.where = where
        self.ordering = ordering
        self.limit = limit
        self.offset = offset

    def compile(self) -> Tuple[str, List[Any]]:
        columns = ", ".join(
            self.dialect.quote_identifier(field.column_name())
            for field in self.model._meta.get_fields()
        )
        sql_parts: List[str] = [f"SELECT {columns} FROM {self._table()}"]
        where_sql, params = self._compile_where()
        if where_sql:
            sql_parts.append(f"WHERE {where_sql}")

        if self.ordering:
            order_sql = ", ".join(self._compile_ordering(field) for field in self.ordering)
            sql_parts.append(f"ORDER BY {order_sql}")

        limit_clause = self.dialect.limit_clause(self.limit, self.offset)
        if limit_clause:
            sql_parts.append(limit_clause)

        return " ".join(sql_parts), params

    def compile_count(self) -> Tuple[str, List[Any]]:
        if self.limit is not None or self.offset is not None:
            inner_sql, params = self.compile()
            return f"SELECT COUNT(*) FROM ({inner_sql})", params
        where_sql, params = self._compile_where()
        sql = f"SELECT COUNT(*) FROM {self._table()}"
        if where_sql:
            sql = f"{sql} WHERE {where_sql}"
        return sql, params

    def compile_exists(self) -> Tuple[str, List[Any]]:
        where_sql, params = self._compile_where()
        sql = f"SELECT 1 FROM {self._table()}"
        if where_sql:
            sql = f"{sql} WHERE {where_sql}"
        return f"{sql} {self.dialect.limit_clause(1, self.offset)}", params

    # Helpers -----------------------------------------------------------
    def _table(self) -> str:
        return self.dialect.format_table(self.model._meta.table_name)

    def _compile_where(self) -> Tuple[str, List[Any]]:
        if self.where is None or self.where.is_empty():
            return "", []
        return self._compile_q(self.where)

    def _resolve_field(self, name: str) -> Field:
        if name == "pk":
            pk_field = self.model._meta.primary_key
            if pk_field is None:
                raise ValueError(f"Model '{self.model.__name__}' lacks a primary key.")
            return pk_field
        return self.model._meta.get_field(name)

    def _compile_ordering(self, field_name: str) -> str:
        descending = field_name.startswith("-")
        name = field_name[1:] if descending else field_name
        field = self._resolve_field(name)
        clause = self.dialect.quote_identifier(field.column_name())
        if descending:
            clause += " DESC"
        return clause

    def _compile_q(self, q: Q) -> Tuple[str, List[Any]]:
        parts: List[str] = []
        params: List[Any] = []

        for child in q.children:
            if isinstance(child, Q):
                child_sql, child_params = self._compile_q(child)
                if child_sql:
                    parts.append(f"({child_sql})")
                    params.extend(child_params)
            else:
                field_lookup, value = child
                sql, child_params = self._compile_lookup(field_lookup, value)
                parts.append(sql)
                params.extend(child_params)

        if not parts:
            return "", []

        sql = f" {q.connector} ".join(parts)
        if q.negated:
            sql = f"NOT ({sql})"
        return sql, params

    def _compile_lookup(self, field_lookup: str, value: Any) -> Tuple[str, List[Any]]:
        if "__" in field_lookup:
            field_name, lookup = field_lookup.split("__", 1)
        else:
            field_name, lookup = field_lookup, "exact"

        field = self._resolve_field(field_name)
        column = self.dialect.quote_identifier(field.column_name())
        placeholder = self.dialect.parameter_placeholder()

        if lookup == "isnull":
            return f"{column} {'IS NULL' if value else 'IS NOT NULL'}", []

        if value is None:
            if lookup != "exact":
                raise ValueError("NULL comparison only supported for equality.")
            return f"{column} IS NULL", []

        if lookup == "in":
            values = [self._prepare(field, item) for item in value]
            if not values:
                # An empty IN list matches nothing.
                return "1 = 0", []
            placeholders = ", ".join(placeholder for _ in values)
            return f"{column} IN ({placeholders})", values

        if lookup == "iexact":
            return f"LOWER({column}) = LOWER({placeholder})", [str(value)]

        pattern = LIKE_PATTERNS.get(lookup)
        if pattern is not None:
            return (
                f"{column} LIKE {placeholder} ESCAPE '{LIKE_ESCAPE}'",
                [pattern.format(escape_like(str(value)))],
            )

        operator = LOOKUP_OPERATORS.get(lookup)
        if operator is None:
            raise ValueError(f"Unsupported lookup '{lookup}'")
        return f"{column} {operator} {placeholder}", [self._prepare(field, value)]

    @staticmethod
    def _prepare(field: Field, value: Any) -> Optional[Any]:
        from ..core.model import Model

        if isinstance(value, Model):
            value = value.pk
        return field.to_db(value)
