"""
Change tracker recording the lifecycle state and original values of every
instance a session knows about.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Set

from ..core.model import Model
from ..utils import get_logger
from .errors import DuplicateTrackingError, InvalidTransitionError
from .identity_map import IdentityMap


class EntityState(str, enum.Enum):
    DETACHED = "Detached"
    ADDED = "Added"
    UNCHANGED = "Unchanged"
    MODIFIED = "Modified"
    DELETED = "Deleted"


LEGAL_TRANSITIONS: Dict[EntityState, FrozenSet[EntityState]] = {
    EntityState.DETACHED: frozenset(
        {EntityState.ADDED, EntityState.UNCHANGED, EntityState.MODIFIED}
    ),
    EntityState.ADDED: frozenset(
        {EntityState.UNCHANGED, EntityState.DELETED, EntityState.DETACHED}
    ),
    EntityState.UNCHANGED: frozenset(
        {EntityState.MODIFIED, EntityState.DELETED, EntityState.DETACHED}
    ),
    EntityState.MODIFIED: frozenset(
        {EntityState.UNCHANGED, EntityState.DELETED, EntityState.DETACHED}
    ),
    EntityState.DELETED: frozenset({EntityState.DETACHED}),
}


def is_legal_transition(current: EntityState, requested: EntityState) -> bool:
    return requested in LEGAL_TRANSITIONS[current]


def snapshot(instance: Model) -> Dict[str, Any]:
    return {name: instance._field_values.get(name) for name in instance._meta.fields}


@dataclass(eq=False)
class TrackedEntry:
    """
    One tracked instance: its state, the values it had at the last load or
    save, and the set of fields that differ from them.
    """

    instance: Model
    state: EntityState
    original_values: Dict[str, Any]
    modified_fields: Set[str] = field(default_factory=set)
    # Fields marked dirty without a value change (whole-object update, relinking).
    forced_fields: Set[str] = field(default_factory=set)
    # False when the row's stored values are unknown, e.g. after update().
    originals_known: bool = True
    # True once the row is known to exist in the database.
    persisted: bool = False
    # Fields assigned since the snapshot, fed by the instance's field descriptors.
    touched_fields: Set[str] = field(default_factory=set)

    @property
    def model(self) -> type[Model]:
        return self.instance.__class__

    @property
    def key(self) -> Any:
        return self.instance.pk

    @property
    def current_values(self) -> Dict[str, Any]:
        return snapshot(self.instance)

    def original_value(self, name: str) -> Any:
        self.model._meta.get_field(name)
        return self.original_values.get(name)

    def is_modified(self, name: str) -> bool:
        return name in self.modified_fields

    def detect(self) -> bool:
        """
        Recompute the dirty-field mask. Only fields assigned since the
        snapshot are compared, by value, against their original values.
        Returns True when any field is dirty.
        """
        pk_field = self.model._meta.primary_key
        pk_name = pk_field.name if pk_field else None
        values = self.instance._field_values
        changed = {
            name
            for name in self.touched_fields
            if name != pk_name and values.get(name) != self.original_values.get(name)
        }
        self.modified_fields = changed | self.forced_fields
        return bool(self.modified_fields)

    def field_touched(self, name: str) -> None:
        self.touched_fields.add(name)

    def mark_all_modified(self) -> None:
        pk_field = self.model._meta.primary_key
        self.forced_fields = {
            name for name in self.model._meta.fields if pk_field is None or name != pk_field.name
        }
        self.modified_fields |= self.forced_fields

    def accept(self) -> None:
        self.original_values = self.current_values
        self.touched_fields.clear()
        self.modified_fields = set()
        self.forced_fields = set()
        self.originals_known = True
        self.persisted = True


class ChangeTracker:
    """
    Owns the tracked entries of one session. At most one entry exists per
    instance, and at most one tracked instance per (model, key).
    """

    def __init__(self) -> None:
        self._entries: Dict[Model, TrackedEntry] = {}
        self.identity_map = IdentityMap()
        self.logger = get_logger("persistence.tracker")

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def entry(self, instance: Model) -> Optional[TrackedEntry]:
        return self._entries.get(instance)

    def entries(self, *states: EntityState) -> List[TrackedEntry]:
        if not states:
            return list(self._entries.values())
        return [entry for entry in self._entries.values() if entry.state in states]

    def get_state(self, instance: Model) -> EntityState:
        entry = self._entries.get(instance)
        return entry.state if entry else EntityState.DETACHED

    def find(self, model: type[Model], pk: Any) -> Optional[Model]:
        return self.identity_map.get(model, pk)

    def __contains__(self, instance: Model) -> bool:
        return instance in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TrackedEntry]:
        return iter(list(self._entries.values()))

    # ------------------------------------------------------------------ #
    # State changes
    # ------------------------------------------------------------------ #
    def track(self, instance: Model, initial_state: EntityState) -> TrackedEntry:
        if instance in self._entries:
            raise DuplicateTrackingError(instance)
        if not is_legal_transition(EntityState.DETACHED, initial_state):
            raise InvalidTransitionError(instance, EntityState.DETACHED, initial_state)
        if initial_state is not EntityState.ADDED and instance.pk is not None:
            existing = self.identity_map.get(instance.__class__, instance.pk)
            if existing is not None and existing is not instance:
                raise DuplicateTrackingError(instance)

        entry = TrackedEntry(
            instance,
            initial_state,
            snapshot(instance),
            persisted=initial_state is not EntityState.ADDED,
        )
        instance._change_listeners.append(entry)
        if initial_state is EntityState.MODIFIED:
            entry.originals_known = False
            entry.mark_all_modified()
        self._entries[instance] = entry
        if initial_state is not EntityState.ADDED:
            self.identity_map.add(instance)
        self.logger.debug("Tracking %r as %s", instance, initial_state.value)
        return entry

    def set_state(self, instance: Model, new_state: EntityState) -> Optional[TrackedEntry]:
        entry = self._entries.get(instance)
        current = entry.state if entry else EntityState.DETACHED
        if current is new_state:
            return entry
        if not is_legal_transition(current, new_state):
            raise InvalidTransitionError(instance, current, new_state)
        if entry is None:
            return self.track(instance, new_state)

        if new_state is EntityState.DETACHED:
            self.untrack(instance)
            return None
        if new_state is EntityState.UNCHANGED:
            entry.accept()
            self.identity_map.add(instance)
        elif new_state is EntityState.MODIFIED:
            entry.mark_all_modified()
        entry.state = new_state
        self.logger.debug("%r: %s -> %s", instance, current.value, new_state.value)
        return entry

    def untrack(self, instance: Model) -> None:
        entry = self._entries.pop(instance, None)
        if entry is None:
            return
        instance._change_listeners.remove(entry)
        self.identity_map.remove(instance)
        self.logger.debug("%r detached", instance)

    def clear(self) -> None:
        for instance, entry in self._entries.items():
            instance._change_listeners.remove(entry)
        self._entries.clear()
        self.identity_map.clear()

    # ------------------------------------------------------------------ #
    # Change detection
    # ------------------------------------------------------------------ #
    def detect_changes(self) -> None:
        """
        Reclassify UNCHANGED/MODIFIED entries from their current values and
        link children placed in tracked collection navigations. Never raises
        for tracked data; it only reclassifies state.
        """
        for entry in list(self._entries.values()):
            if entry.state not in (EntityState.DELETED, EntityState.DETACHED):
                self._fix_up_navigations(entry)
        for entry in list(self._entries.values()):
            self.detect_entry(entry)

    def detect_entry(self, entry: TrackedEntry) -> None:
        if entry.state not in (EntityState.UNCHANGED, EntityState.MODIFIED):
            return
        if entry.detect() and entry.state is EntityState.UNCHANGED:
            entry.state = EntityState.MODIFIED
            self.logger.debug(
                "%r: Unchanged -> Modified (%s)", entry.instance, ", ".join(sorted(entry.modified_fields))
            )

    def track_graph(self, instance: Model, state: EntityState) -> TrackedEntry:
        """
        Track ``instance`` and every untracked child reachable through its
        loaded collection navigations.
        """
        entry = self.track(instance, state)
        self._fix_up_navigations(entry)
        return entry

    def accept_all_changes(self) -> None:
        for entry in list(self._entries.values()):
            if entry.state is EntityState.DELETED:
                self.untrack(entry.instance)
                continue
            if entry.state in (EntityState.ADDED, EntityState.MODIFIED):
                self.logger.debug("%r: %s -> Unchanged", entry.instance, entry.state.value)
            entry.accept()
            entry.state = EntityState.UNCHANGED
            self.identity_map.add(entry.instance)

    def _fix_up_navigations(self, entry: TrackedEntry) -> None:
        parent = entry.instance
        for navigation in parent._meta.navigations.values():
            if not navigation.is_loaded(parent):
                continue
            fk = navigation.field
            for child in navigation.items(parent):
                if fk.linked_parent(child) is not parent:
                    current_key = child._field_values.get(fk.require_name())
                    child._parent_links[fk.require_name()] = parent
                    child_entry = self._entries.get(child)
                    if parent.pk is not None:
                        fk.sync_from_parent(child)
                    elif child_entry is not None and current_key is not None:
                        # Parent has no key yet; the column is rewritten once it is inserted.
                        child_entry.forced_fields.add(fk.require_name())
                if child not in self._entries:
                    self.track_graph(child, EntityState.ADDED)
