"""
Expression tree primitives for query construction.
"""

from __future__ import annotations

from typing import Any, List, Tuple, Union

AND = "AND"
OR = "OR"

Lookup = Tuple[str, Any]


class Q:
    """
    Boolean filter expression, e.g. ``Q(title__startswith="F") | Q(stars__gte=4)``.

    Keyword lookups passed together are AND-ed. Expressions combine with
    ``&``, ``|`` and ``~`` into a tree that the compiler renders as a WHERE
    clause with bound parameters.
    """

    def __init__(self, *children: Union["Q", Lookup], **lookups: Any) -> None:
        self.children: List[Union["Q", Lookup]] = list(children)
        self.children.extend(sorted(lookups.items()))
        self.connector = AND
        self.negated = False

    def __or__(self, other: "Q") -> "Q":
        return self._combine(other, OR)

    def __and__(self, other: "Q") -> "Q":
        return self._combine(other, AND)

    def __invert__(self) -> "Q":
        q = self._clone()
        q.negated = not q.negated
        return q

    def __repr__(self) -> str:
        prefix = "NOT " if self.negated else ""
        return f"<Q {prefix}{self.connector}: {self.children!r}>"

    def is_empty(self) -> bool:
        return not self.children

    def _clone(self) -> "Q":
        clone = Q(*self.children)
        clone.connector = self.connector
        clone.negated = self.negated
        return clone

    def _combine(self, other: "Q", connector: str) -> "Q":
        if not isinstance(other, Q):
            raise TypeError(f"Cannot combine Q with {type(other).__name__}")
        if other.is_empty():
            return self._clone()
        if self.is_empty():
            return other._clone()
        q = Q(self._clone(), other._clone())
        q.connector = connector
        return q
