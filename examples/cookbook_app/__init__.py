"""
Cookbook sample application walking through EmberORM's change tracking.
"""

from .demo import (
    add_and_modify,
    attach_entities,
    change_tracking,
    create_factory,
    entity_states,
    expression_query,
    no_tracking,
    porridge,
    raw_sql,
    run_demo,
    transactions,
)
from .models import Dish, DishIngredient

__all__ = [
    "Dish",
    "DishIngredient",
    "add_and_modify",
    "attach_entities",
    "change_tracking",
    "create_factory",
    "entity_states",
    "expression_query",
    "no_tracking",
    "porridge",
    "raw_sql",
    "run_demo",
    "transactions",
]
