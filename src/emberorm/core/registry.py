"""
Entity registry: immutable per-model descriptors of table and column metadata.

Descriptors are built from the explicitly declared field objects the first
time a model is described and cached for the life of the process.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Optional, Tuple, Type

from .fields import DecimalField, Field, StringField
from .model import Model, ModelConfigurationError


class UnmappedTypeError(ModelConfigurationError):
    """Raised when a type cannot be mapped to a table."""

    def __init__(self, model: Any, reason: str) -> None:
        self.model = model
        self.reason = reason
        name = getattr(model, "__name__", repr(model))
        super().__init__(f"Type '{name}' is not a mapped entity: {reason}")


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    column: str
    semantic_type: str
    nullable: bool
    primary_key: bool = False
    max_length: Optional[int] = None
    max_digits: Optional[int] = None
    decimal_places: Optional[int] = None


@dataclass(frozen=True)
class ForeignKeyDescriptor:
    field: str
    column: str
    target: str
    on_delete: str


@dataclass(frozen=True)
class NavigationDescriptor:
    name: str
    target: str
    foreign_key: str


@dataclass(frozen=True)
class EntityTypeDescriptor:
    name: str
    table: str
    fields: Tuple[FieldDescriptor, ...]
    primary_key: Tuple[str, ...]
    foreign_keys: Tuple[ForeignKeyDescriptor, ...] = ()
    navigations: Tuple[NavigationDescriptor, ...] = ()

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(field.name for field in self.fields)

    def field(self, name: str) -> FieldDescriptor:
        for descriptor in self.fields:
            if descriptor.name == name:
                return descriptor
        raise KeyError(f"Unknown field '{name}' on entity '{self.name}'")


class EntityRegistry:
    """
    Process-wide cache of :class:`EntityTypeDescriptor` objects.
    """

    def __init__(self) -> None:
        self._descriptors: Dict[Type[Model], EntityTypeDescriptor] = {}
        self._lock = RLock()

    def describe(self, model: Any) -> EntityTypeDescriptor:
        if not isinstance(model, type):
            raise UnmappedTypeError(model, "not a class")
        with self._lock:
            cached = self._descriptors.get(model)
            if cached is not None:
                return cached
            descriptor = self._build(model)
            self._descriptors[model] = descriptor
            return descriptor

    def forget(self, model: Type[Model]) -> None:
        with self._lock:
            self._descriptors.pop(model, None)

    def clear(self) -> None:
        with self._lock:
            self._descriptors.clear()

    def _build(self, model: Any) -> EntityTypeDescriptor:
        if not issubclass(model, Model) or model is Model:
            raise UnmappedTypeError(model, "not a Model subclass")
        meta = model._meta
        if meta.abstract:
            raise UnmappedTypeError(model, "abstract models have no table")
        if meta.primary_key is None:
            raise UnmappedTypeError(model, "no primary key field")

        foreign_keys = []
        for fk in meta.foreign_keys:
            if fk.remote_model is None:
                raise UnmappedTypeError(
                    model, f"foreign key '{fk.name}' references unresolved model '{fk.to}'"
                )
            foreign_keys.append(
                ForeignKeyDescriptor(
                    field=fk.require_name(),
                    column=fk.column_name(),
                    target=fk.remote_model.__name__,
                    on_delete=fk.on_delete,
                )
            )

        navigations = tuple(
            NavigationDescriptor(
                name=name,
                target=navigation.source_model.__name__,
                foreign_key=navigation.field.require_name(),
            )
            for name, navigation in meta.navigations.items()
        )

        return EntityTypeDescriptor(
            name=model.__name__,
            table=meta.table_name,
            fields=tuple(_describe_field(field) for field in meta.get_fields()),
            primary_key=(meta.primary_key.require_name(),),
            foreign_keys=tuple(foreign_keys),
            navigations=navigations,
        )


def _describe_field(field: Field) -> FieldDescriptor:
    return FieldDescriptor(
        name=field.require_name(),
        column=field.column_name(),
        semantic_type=field.semantic_type,
        nullable=field.nullable and not field.primary_key,
        primary_key=field.primary_key,
        max_length=field.max_length if isinstance(field, StringField) else None,
        max_digits=field.max_digits if isinstance(field, DecimalField) else None,
        decimal_places=field.decimal_places if isinstance(field, DecimalField) else None,
    )


entity_registry = EntityRegistry()


def describe(model: Any) -> EntityTypeDescriptor:
    """
    Return the cached descriptor for ``model``, raising
    :class:`UnmappedTypeError` for types that cannot be mapped.
    """
    return entity_registry.describe(model)
