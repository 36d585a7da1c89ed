"""
QuerySet implementation providing a chainable, lazily evaluated query API.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple

from ..core.relations import Collection
from .compiler import SQLCompiler
from .expressions import Q

if TYPE_CHECKING:
    from ..core.model import Model
    from ..persistence.session import Session


class QueryResultError(LookupError):
    pass


class NoResultFound(QueryResultError):
    pass


class MultipleResultsFound(QueryResultError):
    pass


class QuerySet:
    """
    Chainable query bound to a session. Every refinement returns a new
    QuerySet; SQL runs only when results are requested (iteration,
    :meth:`all`, :meth:`first`, :meth:`single`, :meth:`count`,
    :meth:`exists`).

    Materialized rows are tracked as UNCHANGED by the session unless
    no-tracking applies, either session-wide or through
    :meth:`as_no_tracking`.
    """

    def __init__(
        self,
        model: type["Model"],
        session: "Session",
        *,
        where: Optional[Q] = None,
        ordering: Tuple[str, ...] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        prefetch_related: Tuple[str, ...] = (),
        no_tracking: Optional[bool] = None,
    ) -> None:
        self.model = model
        self.session = session
        self._where = where or Q()
        self._ordering = ordering
        self._limit = limit
        self._offset = offset
        self._prefetch_related = prefetch_related
        self._no_tracking = no_tracking

    # Refinement --------------------------------------------------------
    def filter(self, **lookups: Any) -> "QuerySet":
        return self._clone(where=self._where & Q(**lookups))

    def exclude(self, **lookups: Any) -> "QuerySet":
        return self._clone(where=self._where & ~Q(**lookups))

    def where(self, q_object: Q) -> "QuerySet":
        return self._clone(where=self._where & q_object)

    def order_by(self, *fields: str) -> "QuerySet":
        return self._clone(ordering=tuple(fields))

    def limit(self, value: int) -> "QuerySet":
        if value < 0:
            raise ValueError("limit() requires a non-negative value.")
        return self._clone(limit=value)

    def offset(self, value: int) -> "QuerySet":
        if value < 0:
            raise ValueError("offset() requires a non-negative value.")
        return self._clone(offset=value)

    def prefetch_related(self, *relations: str) -> "QuerySet":
        if not relations:
            raise ValueError("prefetch_related() requires at least one relationship name.")
        for relation in relations:
            self._collection(relation)
        combined = tuple(dict.fromkeys(self._prefetch_related + relations))
        return self._clone(prefetch_related=combined)

    def as_no_tracking(self) -> "QuerySet":
        return self._clone(no_tracking=True)

    def as_tracking(self) -> "QuerySet":
        return self._clone(no_tracking=False)

    @property
    def tracked(self) -> bool:
        if self._no_tracking is None:
            return not self.session.no_tracking
        return not self._no_tracking

    def to_sql(self) -> Tuple[str, List[Any]]:
        return self._compiler().compile()

    # Evaluation --------------------------------------------------------
    def __iter__(self) -> Iterator["Model"]:
        return iter(self._fetch())

    def all(self) -> List["Model"]:
        return self._fetch()

    def first(self) -> Optional["Model"]:
        results = self._clone(limit=1)._fetch()
        return results[0] if results else None

    def single(self) -> "Model":
        """
        Return the only row matching the query. Raises
        :class:`NoResultFound` or :class:`MultipleResultsFound` otherwise.
        """
        results = self._clone(limit=2)._fetch()
        if not results:
            raise NoResultFound(f"No {self.model.__name__} matches the query.")
        if len(results) > 1:
            raise MultipleResultsFound(
                f"More than one {self.model.__name__} matches the query."
            )
        return results[0]

    def count(self) -> int:
        sql, params = self._compiler().compile_count()
        row = self.session.execute(sql, params).fetchone()
        return int(row[0])

    def exists(self) -> bool:
        sql, params = self._compiler().compile_exists()
        return self.session.execute(sql, params).fetchone() is not None

    # Internal helpers --------------------------------------------------
    def _compiler(self) -> SQLCompiler:
        return SQLCompiler(
            model=self.model,
            dialect=self.session.dialect,
            where=self._where,
            ordering=self._ordering,
            limit=self._limit,
            offset=self._offset,
        )

    def _fetch(self) -> List["Model"]:
        sql, params = self.to_sql()
        cursor = self.session.execute(sql, params)
        tracked = self.tracked
        instances = [
            self.session._materialize(self.model, self._row_to_dict(cursor, row), tracked=tracked)
            for row in cursor.fetchall()
        ]
        for relation in self._prefetch_related:
            self._prefetch_collection(instances, relation, tracked)
        return instances

    def _clone(self, **overrides: Any) -> "QuerySet":
        params = {
            "where": self._where,
            "ordering": self._ordering,
            "limit": self._limit,
            "offset": self._offset,
            "prefetch_related": self._prefetch_related,
            "no_tracking": self._no_tracking,
        }
        params.update(overrides)
        return QuerySet(self.model, self.session, **params)

    @staticmethod
    def _row_to_dict(cursor, row) -> Dict[str, Any]:
        if hasattr(row, "keys"):
            return dict(row)
        if hasattr(cursor, "description"):
            columns = [col[0] for col in cursor.description]
            return {col: row[idx] for idx, col in enumerate(columns)}
        raise ValueError("Unable to map database row to dictionary.")

    def _collection(self, relation: str) -> Collection:
        navigation = self.model._meta.navigations.get(relation)
        if navigation is None:
            raise ValueError(
                f"Cannot prefetch relation '{relation}' for model '{self.model.__name__}'"
            )
        return navigation

    def _prefetch_collection(self, instances: List["Model"], relation: str, tracked: bool) -> None:
        navigation = self._collection(relation)
        parents = {obj.pk: obj for obj in instances if obj.pk is not None}
        for parent in parents.values():
            parent._related_cache.setdefault(relation, [])
        if not parents:
            return
        children = QuerySet(
            navigation.source_model,
            self.session,
            where=Q((f"{navigation.field.require_name()}__in", list(parents))),
            no_tracking=not tracked,
        ).all()
        fk_name = navigation.field.require_name()
        for child in children:
            parent = parents.get(child._field_values.get(fk_name))
            if parent is None:
                continue
            child._parent_links[fk_name] = parent
            loaded = parent._related_cache[relation]
            if not any(existing is child for existing in loaded):
                loaded.append(child)
