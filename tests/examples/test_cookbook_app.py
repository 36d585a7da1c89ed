import json
from decimal import Decimal

from emberorm.persistence import EntityState
from examples.cookbook_app import (
    Dish,
    DishIngredient,
    attach_entities,
    change_tracking,
    create_factory,
    entity_states,
    no_tracking,
    porridge,
    raw_sql,
    run_demo,
    transactions,
)


def test_models_map_to_tutorial_tables():
    assert Dish._meta.table_name == "dishes"
    assert DishIngredient._meta.table_name == "ingredients"
    assert DishIngredient._meta.get_field("dish").column_name() == "dish_id"
    assert "ingredients" in Dish._meta.navigations


def test_entity_states_walk_the_lifecycle(tmp_path):
    factory = create_factory(f"sqlite:///{tmp_path / 'states.db'}")
    assert entity_states(factory) == [
        EntityState.DETACHED,
        EntityState.ADDED,
        EntityState.UNCHANGED,
        EntityState.MODIFIED,
        EntityState.DELETED,
        EntityState.DETACHED,
    ]


def test_change_tracking_keeps_original_values(tmp_path):
    factory = create_factory(f"sqlite:///{tmp_path / 'tracking.db'}")
    assert change_tracking(factory) == {
        "original_notes": "Bar",
        "current_notes": "Baz",
        "same_instance": True,
        "other_session_notes": "Bar",
    }


def test_attach_then_update_writes_row(tmp_path):
    factory = create_factory(f"sqlite:///{tmp_path / 'attach.db'}")
    observed = attach_entities(factory)
    assert observed["detached_state"] is EntityState.DETACHED
    assert observed["update_state"] is EntityState.MODIFIED
    assert observed["rows_updated"] == 1


def test_raw_sql_and_no_tracking(tmp_path):
    factory = create_factory(f"sqlite:///{tmp_path / 'raw.db'}")
    entity_states(factory)
    change_tracking(factory)
    attach_entities(factory)

    assert no_tracking(factory) == {"dishes": 2, "state": EntityState.DETACHED, "tracked_entries": 0}
    assert raw_sql(factory) == {"dishes": 2, "notes_ending_in_z": 0, "deleted_without_ingredients": 2}


def test_failed_transaction_keeps_nothing(tmp_path):
    factory = create_factory(f"sqlite:///{tmp_path / 'tx.db'}")
    observed = transactions(factory)
    assert "NOT NULL" in observed["error"]
    assert observed["dishes_before"] == observed["dishes_after"] == 0


def test_porridge_round_trip(tmp_path):
    factory = create_factory(f"sqlite:///{tmp_path / 'porridge.db'}")
    assert porridge(factory) == {
        "found": 1,
        "stars": 5,
        "ingredients": [("Milk", Decimal("200.00")), ("Rolled oats", Decimal("50.00"))],
        "remaining": 0,
    }


def test_run_demo_reads_settings_file(tmp_path):
    settings = tmp_path / "appsettings.json"
    settings.write_text(
        json.dumps({"ConnectionStrings": {"DefaultConnection": f"sqlite:///{tmp_path / 'demo.db'}"}}),
        encoding="utf-8",
    )
    results = run_demo(settings_path=settings)

    assert results["add_and_modify"]["notes"] == "Baz"
    assert results["add_and_modify"]["rows_updated"] == 1
    assert results["no_tracking"]["dishes"] == 3
    assert results["raw_sql"] == {"dishes": 3, "notes_ending_in_z": 1, "deleted_without_ingredients": 3}
    assert results["expression_query"] == ["Foo"]
    assert results["porridge"]["remaining"] == 0
    assert (tmp_path / "demo.db").exists()
