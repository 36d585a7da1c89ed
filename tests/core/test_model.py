from decimal import Decimal

import pytest

from emberorm.core import (
    BooleanField,
    DecimalField,
    ForeignKey,
    IntegerField,
    Model,
    ModelConfigurationError,
    StringField,
)


class Chef(Model):
    name = StringField(max_length=50, nullable=False)
    age = IntegerField(default=0)
    is_active = BooleanField(default=True)


class Recipe(Model):
    title = StringField(max_length=100, nullable=False)
    cost = DecimalField(max_digits=5, decimal_places=2, nullable=True)


class Step(Model):
    text = StringField(nullable=False)
    recipe = ForeignKey(Recipe, related_name="steps", db_column="recipe_id")


def test_model_metadata_collects_fields_in_order():
    assert list(Chef._meta.fields.keys()) == ["id", "name", "age", "is_active"]
    assert Chef._meta.primary_key.name == "id"
    assert Chef._meta.table_name == "chef"


def test_model_initializes_defaults():
    chef = Chef(name="Alice")
    assert chef.name == "Alice"
    assert chef.age == 0
    assert chef.is_active is True
    assert chef.pk is None


def test_unknown_keyword_is_rejected():
    with pytest.raises(TypeError, match="unexpected"):
        Chef(name="Alice", nickname="Al")


def test_setting_field_enforces_choices():
    class Article(Model):
        status = StringField(choices=("draft", "published"), default="draft")

    article = Article()
    with pytest.raises(ValueError):
        article.status = "archived"


def test_non_nullable_field_rejects_none():
    class Profile(Model):
        email = StringField(nullable=False)

    profile = Profile(email="user@example.com")
    assert profile.email == "user@example.com"

    with pytest.raises(ValueError):
        profile.email = None


def test_string_field_enforces_max_length():
    with pytest.raises(ValueError, match="max_length"):
        Chef(name="x" * 51)


def test_decimal_field_quantizes_and_checks_precision():
    recipe = Recipe(title="Soup", cost="12.345")
    assert recipe.cost == Decimal("12.34")

    recipe.cost = 7
    assert recipe.cost == Decimal("7.00")

    with pytest.raises(ValueError, match="decimal"):
        recipe.cost = Decimal("1234.50")


def test_custom_primary_key_prevents_auto_field():
    class Token(Model):
        token_id = StringField(primary_key=True)

    assert list(Token._meta.fields.keys()) == ["token_id"]
    assert Token._meta.primary_key.name == "token_id"


def test_model_pk_property_returns_primary_key_value():
    class Post(Model):
        identifier = IntegerField(primary_key=True)
        title = StringField()

    post = Post(identifier=12, title="Hello")
    assert post.pk == 12


def test_duplicate_primary_key_raises_error():
    with pytest.raises(ModelConfigurationError):

        class BadModel(Model):
            code = IntegerField(primary_key=True)
            other = IntegerField(primary_key=True)


def test_manual_id_field_without_primary_key_errors():
    with pytest.raises(ModelConfigurationError):

        class BadIdentifier(Model):
            id = IntegerField()


def test_foreign_key_installs_collection_on_parent():
    assert "steps" in Recipe._meta.navigations
    recipe = Recipe(title="Soup")
    step = Step(text="Boil water")
    recipe.steps.append(step)
    assert recipe.steps == [step]


def test_assigning_parent_instance_links_foreign_key():
    recipe = Recipe(id=3, title="Soup")
    step = Step(text="Chop", recipe=recipe)
    assert step.recipe == 3
    assert Step._meta.get_field("recipe").linked_parent(step) is recipe

    unsaved = Recipe(title="Stew")
    later = Step(text="Simmer", recipe=unsaved)
    assert later.recipe is None
    unsaved.id = 9
    assert Step._meta.get_field("recipe").sync_from_parent(later) is True
    assert later.recipe == 9


def test_navigation_keyword_populates_collection():
    steps = [Step(text="One"), Step(text="Two")]
    recipe = Recipe(title="Salad", steps=steps)
    assert recipe.steps == steps
    assert Recipe.steps.is_loaded(recipe)
