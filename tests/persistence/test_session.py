import pytest

from emberorm.adapters import BackendExecutionError, ConnectionConfig, SQLiteAdapter
from emberorm.core import ForeignKey, IntegerField, Model, StringField
from emberorm.persistence import (
    DuplicateTrackingError,
    EntityState,
    InvalidTransitionError,
    NotTrackedError,
    Session,
)
from emberorm.validation import ValidationError


class Plate(Model):
    title = StringField(max_length=100, nullable=False)
    notes = StringField(max_length=1000, nullable=True)
    stars = IntegerField(nullable=True)


class Garnish(Model):
    name = StringField(max_length=50, nullable=False, unique=True)
    plate = ForeignKey(Plate, related_name="garnishes", db_column="plate_id")


class RecordingAdapter(SQLiteAdapter):
    def __init__(self) -> None:
        super().__init__()
        self.statements = []

    def execute(self, sql, params=None):
        self.statements.append((sql, params))
        return super().execute(sql, params)


def open_session(tmp_path, name="session.db", **kwargs) -> Session:
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / name}")
    session = Session(RecordingAdapter(), connection_config=config, **kwargs)
    session.ensure_created(Plate, Garnish)
    session.adapter.statements.clear()
    return session


def written(session):
    return [sql for sql, _ in session.adapter.statements if sql.split()[0] in ("INSERT", "UPDATE", "DELETE")]


def test_foo_bar_baz_lifecycle(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo", notes="Bar")
    session.add(plate)
    session.save_changes()
    assert session.get_state(plate) is EntityState.UNCHANGED
    assert plate.id == 1

    session.adapter.statements.clear()
    plate.notes = "Baz"
    assert session.save_changes() == 1
    updates = written(session)
    assert len(updates) == 1
    assert updates[0].startswith('UPDATE "plate" SET "notes" = ? WHERE "id" = ?')

    session.remove(plate)
    session.save_changes()
    assert session.get_state(plate) is EntityState.DETACHED
    assert session.query(Plate).all() == []
    session.close()


def test_add_save_and_query_round_trip(tmp_path):
    session = open_session(tmp_path)
    session.add(Plate(title="Porridge", notes="Warm", stars=4))
    session.save_changes()
    session.close()

    other = open_session(tmp_path)
    loaded = other.query(Plate).single()
    assert (loaded.title, loaded.notes, loaded.stars) == ("Porridge", "Warm", 4)
    entry = other.entry(loaded)
    assert entry.state is EntityState.UNCHANGED
    assert entry.original_values == {"id": loaded.id, "title": "Porridge", "notes": "Warm", "stars": 4}
    other.close()


def test_state_is_detected_when_inspected(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo", notes="Bar")
    assert session.get_state(plate) is EntityState.DETACHED
    session.add(plate)
    assert session.get_state(plate) is EntityState.ADDED
    session.save_changes()
    plate.notes = "Baz"
    assert session.get_state(plate) is EntityState.MODIFIED
    assert session.entry(plate).modified_fields == {"notes"}
    session.close()


def test_adding_twice_fails(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo")
    session.add(plate)
    with pytest.raises(DuplicateTrackingError):
        session.add(plate)
    session.close()


def test_save_with_no_changes_writes_nothing(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo")
    session.add(plate)
    session.save_changes()
    session.adapter.statements.clear()

    assert session.save_changes() == 0
    assert written(session) == []
    session.close()


def test_remove_untracked_instance_fails(tmp_path):
    session = open_session(tmp_path)
    with pytest.raises(NotTrackedError, match="Plate"):
        session.remove(Plate(title="Ghost"))
    session.close()


def test_removing_added_instance_cancels_insert(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo")
    session.add(plate)
    session.remove(plate)
    assert session.get_state(plate) is EntityState.DELETED

    assert session.save_changes() == 0
    assert written(session) == []
    assert session.get_state(plate) is EntityState.DETACHED
    session.close()


def test_removing_added_instance_with_explicit_key_emits_nothing(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(id=42, title="Foo")
    session.add(plate)
    session.remove(plate)

    assert session.save_changes() == 0
    assert written(session) == []
    assert session.get_state(plate) is EntityState.DETACHED
    session.close()


def test_sessions_sharing_an_instance_detect_changes_independently(tmp_path):
    first = open_session(tmp_path)
    plate = Plate(title="Foo", notes="Bar")
    first.add(plate)
    first.save_changes()

    second = open_session(tmp_path)
    second.attach(plate)
    plate.notes = "Baz"
    first.save_changes()

    assert first.get_state(plate) is EntityState.UNCHANGED
    entry = second.entry(plate)
    assert entry.original_value("notes") == "Bar"
    assert entry.state is EntityState.MODIFIED
    assert entry.modified_fields == {"notes"}
    first.close()
    second.close()


def test_update_writes_whole_object_matched_by_key(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo", notes="Bar")
    session.add(plate)
    session.save_changes()

    session.set_state(plate, EntityState.DETACHED)
    assert session.get_state(plate) is EntityState.DETACHED

    session.update(plate)
    assert session.get_state(plate) is EntityState.MODIFIED
    session.adapter.statements.clear()
    assert session.save_changes() == 1
    assert written(session) == [
        'UPDATE "plate" SET "title" = ?, "notes" = ?, "stars" = ? WHERE "id" = ?'
    ]
    session.close()


def test_update_of_deleted_instance_is_rejected(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo")
    session.add(plate)
    session.save_changes()
    session.remove(plate)
    with pytest.raises(InvalidTransitionError):
        session.update(plate)
    session.close()


def test_attach_tracks_as_unchanged(tmp_path):
    session = open_session(tmp_path)
    session.execute_sql('INSERT INTO "plate" ("title", "notes") VALUES (?, ?)', ["Foo", "Bar"])

    plate = Plate(id=1, title="Foo", notes="Bar")
    session.attach(plate)
    assert session.get_state(plate) is EntityState.UNCHANGED

    plate.stars = 3
    session.save_changes()
    row = session.execute('SELECT stars FROM "plate" WHERE id = 1').fetchone()
    assert row["stars"] == 3
    session.close()


def test_get_uses_identity_map(tmp_path):
    session = open_session(tmp_path)
    session.execute_sql('INSERT INTO "plate" ("title") VALUES (?)', ("Bob",))

    first = session.get(Plate, id=1)
    second = session.get(Plate, id=1)
    assert first is second
    assert first.title == "Bob"
    assert session.get(Plate, id=99) is None
    session.close()


def test_query_returns_tracked_instance_without_overwriting_it(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Foo", notes="Bar")
    session.add(plate)
    session.save_changes()

    plate.notes = "Baz"
    again = session.query(Plate).filter(id=plate.id).single()
    assert again is plate
    assert again.notes == "Baz"
    assert session.entry(plate).original_value("notes") == "Bar"
    session.close()


def test_no_tracking_session_leaves_instances_detached(tmp_path):
    writer = open_session(tmp_path)
    writer.add(Plate(title="Foo"))
    writer.save_changes()
    writer.close()

    reader = open_session(tmp_path, no_tracking=True)
    first = reader.query(Plate).first()
    second = reader.query(Plate).first()
    assert reader.get_state(first) is EntityState.DETACHED
    assert first is not second
    assert len(reader.tracker) == 0
    reader.close()


def test_validation_errors_stop_the_save(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(notes="No title")
    session.add(plate)
    with pytest.raises(ValidationError) as excinfo:
        session.save_changes()
    assert "title" in excinfo.value.errors
    assert session.get_state(plate) is EntityState.ADDED
    assert written(session) == []
    session.close()


def test_failed_save_rolls_back_and_keeps_states(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Curry")
    first = Garnish(name="Coriander")
    duplicate = Garnish(name="Coriander")
    plate.garnishes.extend([first, duplicate])
    session.add(plate)

    with pytest.raises(BackendExecutionError, match="UNIQUE"):
        session.save_changes()

    assert plate.id is None
    assert first.id is None
    assert first.plate is None
    assert session.get_state(plate) is EntityState.ADDED
    assert session.get_state(duplicate) is EntityState.ADDED
    assert session.execute('SELECT COUNT(*) FROM "plate"').fetchone()[0] == 0

    duplicate.name = "Lime"
    session.save_changes()
    assert session.query(Garnish).count() == 2
    assert {g.plate for g in session.query(Garnish)} == {plate.id}
    session.close()


def test_parent_and_children_saved_in_dependency_order(tmp_path):
    session = open_session(tmp_path)
    plate = Plate(title="Tacos")
    session.add(Garnish(name="Salsa", plate=plate))
    session.add(plate)
    session.save_changes()

    inserts = written(session)
    assert inserts[0].startswith('INSERT INTO "plate"')
    assert inserts[1].startswith('INSERT INTO "garnish"')

    loaded = session.query(Plate).prefetch_related("garnishes").single()
    assert [g.name for g in loaded.garnishes] == ["Salsa"]

    session.adapter.statements.clear()
    for garnish in list(loaded.garnishes):
        session.remove(garnish)
    session.remove(loaded)
    session.save_changes()
    deletes = written(session)
    assert deletes[0].startswith('DELETE FROM "garnish"')
    assert deletes[1].startswith('DELETE FROM "plate"')
    session.close()


def test_close_detaches_everything_and_disconnects(tmp_path):
    with open_session(tmp_path) as session:
        plate = Plate(title="Foo")
        session.add(plate)
    assert session.closed
    assert len(session.tracker) == 0
    assert not session.adapter.connected
    session.close()
