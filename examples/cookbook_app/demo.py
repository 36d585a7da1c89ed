"""
Step-by-step tour of EmberORM's change tracking using a small cookbook.

Each step opens its own session from a shared :class:`SessionFactory` and
returns what it observed so the tour can be checked programmatically.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from emberorm.adapters import BackendExecutionError
from emberorm.config import DEFAULT_CONNECTION, ConfigurationSource
from emberorm.persistence import EntityState, SessionFactory
from emberorm.utils import get_logger

from .models import Dish, DishIngredient

SETTINGS_PATH = Path(__file__).with_name("appsettings.json")

logger = get_logger("examples.cookbook")


def create_factory(dsn: Optional[str] = None, settings_path: Path = SETTINGS_PATH) -> SessionFactory:
    """
    Build a session factory from ``dsn`` or, when omitted, from the
    ``DefaultConnection`` entry of the settings file, and create the schema.
    """

    if dsn:
        source = ConfigurationSource({DEFAULT_CONNECTION: dsn}, origin="argument")
    else:
        source = ConfigurationSource.from_json(settings_path)
    factory = SessionFactory(source)
    with factory.create_session() as session:
        session.ensure_created(Dish, DishIngredient)
    return factory


def add_and_modify(factory: SessionFactory) -> Dict[str, Any]:
    with factory.create_session() as session:
        dish = Dish(title="Foo", notes="Bar")
        session.add(dish)
        session.save_changes()

        dish.notes = "Baz"
        updated = session.save_changes()
        return {"id": dish.id, "notes": dish.notes, "rows_updated": updated}


def entity_states(factory: SessionFactory) -> List[EntityState]:
    """
    Walk one dish through Detached, Added, Unchanged, Modified, Deleted and
    back to Detached.
    """

    with factory.create_session() as session:
        dish = Dish(title="Foo", notes="Bar")
        states = [session.get_state(dish)]

        session.add(dish)
        states.append(session.get_state(dish))

        session.save_changes()
        states.append(session.get_state(dish))

        dish.notes = "Baz"
        states.append(session.get_state(dish))
        session.save_changes()

        session.remove(dish)
        states.append(session.get_state(dish))
        session.save_changes()

        states.append(session.get_state(dish))
        return states


def change_tracking(factory: SessionFactory) -> Dict[str, Any]:
    """
    Original values survive a pending modification, a second query in the
    same session returns the tracked instance, and another session still
    sees the stored row.
    """

    with factory.create_session() as session:
        dish = Dish(title="Foo", notes="Bar")
        session.add(dish)
        session.save_changes()
        dish.notes = "Baz"

        entry = session.entry(dish)
        original_notes = entry.original_value("notes")
        from_database = session.query(Dish).filter(id=dish.id).single()

        with factory.create_session() as other_session:
            from_other_session = other_session.query(Dish).filter(id=dish.id).single()
            return {
                "original_notes": original_notes,
                "current_notes": dish.notes,
                "same_instance": from_database is dish,
                "other_session_notes": from_other_session.notes,
            }


def attach_entities(factory: SessionFactory) -> Dict[str, Any]:
    """
    Detach a saved dish, then write it back as a whole-object update.
    """

    with factory.create_session() as session:
        dish = Dish(title="Foo", notes="Bar")
        session.add(dish)
        session.save_changes()

        session.set_state(dish, EntityState.DETACHED)
        detached_state = session.get_state(dish)

        session.update(dish)
        update_state = session.get_state(dish)
        rows_updated = session.save_changes()
        return {
            "detached_state": detached_state,
            "update_state": update_state,
            "rows_updated": rows_updated,
        }


def no_tracking(factory: SessionFactory) -> Dict[str, Any]:
    with factory.create_session() as session:
        dishes = session.query(Dish).as_no_tracking().all()
        return {
            "dishes": len(dishes),
            "state": session.get_state(dishes[0]) if dishes else None,
            "tracked_entries": len(session.tracker),
        }


def raw_sql(factory: SessionFactory) -> Dict[str, Any]:
    """
    Raw SELECTs materialize dishes; parameters are always bound, never
    spliced into the SQL text.
    """

    with factory.create_session() as session:
        dishes = session.from_sql(Dish, "SELECT * FROM dishes")
        notes_filter = "%z"
        filtered = session.from_sql(Dish, "SELECT * FROM dishes WHERE notes LIKE ?", [notes_filter])
        deleted = session.execute_sql(
            "DELETE FROM dishes WHERE id NOT IN (SELECT dish_id FROM ingredients)"
        )
        return {
            "dishes": len(dishes),
            "notes_ending_in_z": len(filtered),
            "deleted_without_ingredients": deleted,
        }


def transactions(factory: SessionFactory) -> Dict[str, Any]:
    """
    A failing statement inside an explicit transaction: the caller rolls
    back, so the dish saved earlier in the transaction is not kept.
    """

    with factory.create_session() as session:
        before = session.query(Dish).count()
        error: Optional[str] = None
        with session.begin_transaction() as transaction:
            try:
                session.add(Dish(title="Foo", notes="Bar"))
                session.save_changes()

                session.execute_sql("INSERT INTO dishes (title) VALUES (NULL)")
                transaction.commit()
            except BackendExecutionError as exc:
                logger.warning("Something bad happened: %s", exc.message)
                error = exc.message
                transaction.rollback()
        after = session.query(Dish).count()
        return {"error": error, "dishes_before": before, "dishes_after": after}


def expression_query(factory: SessionFactory) -> List[str]:
    with factory.create_session() as session:
        session.add(Dish(title="Foo", notes="Bar"))
        session.save_changes()

        dishes = session.query(Dish).filter(title__startswith="F").all()
        return [dish.title for dish in dishes]


def porridge(factory: SessionFactory) -> Dict[str, Any]:
    """
    Save a dish together with its ingredients, rate it, read it back with
    its ingredients and remove it again.
    """

    with factory.create_session() as session:
        dish = Dish(
            title="Breakfast Porridge",
            notes="This is sooooo gooood",
            stars=4,
            ingredients=[
                DishIngredient(description="Rolled oats", unit_of_measure="g", amount=Decimal("50")),
                DishIngredient(description="Milk", unit_of_measure="ml", amount=Decimal("200")),
            ],
        )
        session.add(dish)
        session.save_changes()

        found = session.query(Dish).filter(title__contains="Porridge").all()
        dish.stars = 5
        session.save_changes()

    with factory.create_session() as session:
        loaded = session.query(Dish).prefetch_related("ingredients").filter(id=dish.id).single()
        summary = {
            "found": len(found),
            "stars": loaded.stars,
            "ingredients": sorted(
                (item.description, item.amount) for item in loaded.ingredients
            ),
        }
        for ingredient in loaded.ingredients:
            session.remove(ingredient)
        session.remove(loaded)
        session.save_changes()
        summary["remaining"] = session.query(Dish).filter(id=dish.id).count()
        return summary


def run_demo(dsn: Optional[str] = None, settings_path: Path = SETTINGS_PATH) -> Dict[str, Any]:
    """
    Run every step in order and collect what each one observed.
    """

    factory = create_factory(dsn, settings_path)
    return {
        "add_and_modify": add_and_modify(factory),
        "entity_states": entity_states(factory),
        "change_tracking": change_tracking(factory),
        "attach_entities": attach_entities(factory),
        "no_tracking": no_tracking(factory),
        "raw_sql": raw_sql(factory),
        "transactions": transactions(factory),
        "expression_query": expression_query(factory),
        "porridge": porridge(factory),
    }


if __name__ == "__main__":
    for step, observed in run_demo().items():
        print(f"{step}: {observed}")
