"""
Relationship fields, collection navigations and the relation registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple, Type, cast

from .fields import Field

if TYPE_CHECKING:
    from .model import Model


ON_DELETE_ACTIONS = ("CASCADE", "RESTRICT", "SET NULL", "NO ACTION")


class RelationshipError(RuntimeError):
    pass


class ForeignKey(Field):
    """
    Column holding the key of a row in another model's table.

    Assigning a model instance links the two objects: the key is copied now
    if the parent already has one, otherwise it is filled in when the parent
    is inserted by the same ``save_changes()`` call.
    """

    semantic_type = "reference"

    def __init__(
        self,
        to: Type | str,
        *,
        related_name: Optional[str] = None,
        on_delete: str = "CASCADE",
        **kwargs: Any,
    ) -> None:
        if on_delete not in ON_DELETE_ACTIONS:
            raise RelationshipError(f"Unsupported on_delete action '{on_delete}'")
        kwargs.setdefault("db_type", "INTEGER")
        kwargs.setdefault("nullable", False)
        super().__init__(**kwargs)
        self.to = to
        self.related_name = related_name
        self.on_delete = on_delete
        self.remote_model: Optional[Type] = to if isinstance(to, type) else None

    def __set__(self, instance: object, value: Any) -> None:
        from .model import Model

        model_instance = cast("Model", instance)
        name = self.require_name()
        if isinstance(value, Model):
            model_instance._parent_links[name] = value
            model_instance._field_values[name] = self.to_python(value.pk)
            model_instance._field_touched(name)
            return
        model_instance._parent_links.pop(name, None)
        super().__set__(instance, value)

    def to_python(self, value: Any) -> Any:
        if value is None:
            return None
        remote = self.remote_model
        if remote is not None and remote._meta.primary_key is not None:
            return remote._meta.primary_key.to_python(value)
        return value

    def resolve_model(self, model: Type) -> None:
        self.remote_model = model

    def linked_parent(self, instance: "Model") -> "Model | None":
        return instance._parent_links.get(self.require_name())

    def sync_from_parent(self, instance: "Model") -> bool:
        """
        Copy the linked parent's key into this column. Returns True when the
        column value changed.
        """
        parent = self.linked_parent(instance)
        if parent is None or parent.pk is None:
            return False
        name = self.require_name()
        if instance._field_values.get(name) == parent.pk:
            return False
        instance._field_values[name] = parent.pk
        instance._field_touched(name)
        return True


class Collection:
    """
    Collection-valued navigation on the parent side of a :class:`ForeignKey`,
    e.g. ``Dish.ingredients``. Each instance owns a plain list; children
    appended to it are linked to the parent by the change tracker.
    """

    def __init__(self, name: str, source_model: Type, field: ForeignKey) -> None:
        self.name = name
        self.source_model = source_model
        self.field = field

    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        model_instance = cast("Model", instance)
        return model_instance._related_cache.setdefault(self.name, [])

    def __set__(self, instance: object, value: Any) -> None:
        model_instance = cast("Model", instance)
        model_instance._related_cache[self.name] = list(value or [])

    def is_loaded(self, instance: "Model") -> bool:
        return self.name in instance._related_cache

    def items(self, instance: "Model") -> List["Model"]:
        return list(instance._related_cache.get(self.name, []))


class RelationRegistry:
    """
    Resolves string references between models and installs collection
    navigations on the referenced models.
    """

    def __init__(self) -> None:
        self.models: Dict[str, Type] = {}
        self.pending_fields: List[Tuple[Type, ForeignKey]] = []

    def register_model(self, model: Type) -> None:
        self.models[model.__name__] = model
        self._resolve_pending()

    def register_field(self, model: Type, field: ForeignKey) -> None:
        target = self._resolve_target(field.to)
        if target is None:
            self.pending_fields.append((model, field))
            return
        field.resolve_model(target)
        self._attach_collection(model, field)

    def unresolved(self) -> List[Tuple[Type, ForeignKey]]:
        return list(self.pending_fields)

    def _resolve_pending(self) -> None:
        unresolved = []
        for model, field in self.pending_fields:
            target = self._resolve_target(field.to)
            if target is None:
                unresolved.append((model, field))
                continue
            field.resolve_model(target)
            self._attach_collection(model, field)
        self.pending_fields = unresolved

    def _resolve_target(self, target: Type | str) -> Optional[Type]:
        if isinstance(target, type):
            return target
        label = target.split(".")[-1]
        return self.models.get(label)

    def _attach_collection(self, model: Type, field: ForeignKey) -> None:
        remote = field.remote_model
        if remote is None:
            return
        related_name = field.related_name or f"{model.__name__.lower()}_set"
        existing = remote.__dict__.get(related_name)
        if existing is not None and not isinstance(existing, Collection):
            raise RelationshipError(
                f"Cannot install navigation '{related_name}' on '{remote.__name__}': "
                "the name is already taken"
            )
        navigation = Collection(related_name, model, field)
        setattr(remote, related_name, navigation)
        remote._meta.navigations[related_name] = navigation

        # A navigation added after the target was described invalidates its descriptor.
        from .registry import entity_registry

        entity_registry.forget(remote)


relation_registry = RelationRegistry()


def dependency_order(models: Iterable[Type]) -> List[Type]:
    """
    Order ``models`` so each one follows every model its foreign keys
    reference. Self references are ignored and cycles keep input order.
    """
    pending = list(dict.fromkeys(models))
    ordered: List[Type] = []
    while pending:
        ready = [
            model
            for model in pending
            if not any(
                fk.remote_model is not model and fk.remote_model in pending
                for fk in model._meta.foreign_keys
            )
        ]
        if not ready:
            ordered.extend(pending)
            break
        ordered.extend(ready)
        pending = [model for model in pending if model not in ready]
    return ordered
