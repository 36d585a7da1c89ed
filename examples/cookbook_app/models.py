"""
Data models for the EmberORM cookbook example.
"""

from __future__ import annotations

from decimal import Decimal

from emberorm.core import DecimalField, ForeignKey, IntegerField, Model, StringField


class Dish(Model):
    title = StringField(nullable=False, max_length=100, default="")
    notes = StringField(nullable=True, max_length=1000)
    stars = IntegerField(nullable=True)

    class Meta:
        table = "dishes"


class DishIngredient(Model):
    description = StringField(nullable=False, max_length=100, default="")
    unit_of_measure = StringField(nullable=False, max_length=50, default="")
    amount = DecimalField(max_digits=5, decimal_places=2, nullable=False, default=Decimal("0"))
    dish = ForeignKey(Dish, related_name="ingredients", db_column="dish_id")

    class Meta:
        table = "ingredients"
