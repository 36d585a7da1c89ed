"""
Field definitions and descriptors for EmberORM models.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Sequence, cast

if TYPE_CHECKING:
    from .model import Model


class FieldError(Exception):
    """Internal exception for field configuration issues."""


class Field:
    """
    Base class for model field descriptors.

    Fields manage attribute storage on model instances and retain the
    metadata the entity registry exposes: semantic type, nullability,
    length and precision limits.
    """

    semantic_type = "any"
    _creation_counter = 0

    def __init__(
        self,
        *,
        primary_key: bool = False,
        unique: bool = False,
        nullable: bool = True,
        default: Any = None,
        db_type: Optional[str] = None,
        db_column: Optional[str] = None,
        db_default: Any = None,
        choices: Optional[Sequence[Any]] = None,
        validators: Optional[Iterable[Callable[[Any], None]]] = None,
        help_text: Optional[str] = None,
    ) -> None:
        self.primary_key = primary_key
        self.unique = unique
        self.nullable = nullable
        self.default = default
        self.db_type = db_type
        self.db_column = db_column
        self.db_default = db_default
        self.choices = tuple(choices) if choices is not None else None
        self.validators = list(validators or [])
        self.help_text = help_text

        self.model: type["Model"] | None = None  # Will be set during contribute_to_class
        self.name: str | None = None
        self.creation_counter = Field._creation_counter
        Field._creation_counter += 1

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self

        model_instance = cast("Model", instance)
        name = self.require_name()
        if name not in model_instance._field_values:
            default = self.get_default()
            if default is not None:
                model_instance._field_values[name] = default
            return default
        return model_instance._field_values[name]

    def __set__(self, instance: object, value: Any) -> None:
        model_instance = cast("Model", instance)
        name = self.require_name()
        if value is None:
            if not self.nullable and not self.primary_key:
                raise ValueError(f"Field '{name}' on '{type(instance).__name__}' cannot be None")
            model_instance._field_values[name] = None
            model_instance._field_touched(name)
            return

        if self.choices and value not in self.choices:
            raise ValueError(f"Value '{value}' for field '{name}' not in choices {self.choices}")

        model_instance._field_values[name] = self.to_python(value)
        model_instance._field_touched(name)

    # Metadata helpers ----------------------------------------------------
    def bind(self, model: type["Model"], name: str) -> None:
        self.model = model
        self.name = name
        if self.db_column is None:
            self.db_column = name

    def contribute_to_class(self, model: type["Model"], name: str) -> None:
        """
        Attach the field to the model class as a descriptor.
        """
        self.bind(model, name)
        setattr(model, name, self)

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name

    def column_name(self) -> str:
        if self.db_column:
            return self.db_column
        return self.require_name()

    # Conversion / validation ---------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    def to_python(self, value: Any) -> Any:
        return value

    def to_db(self, value: Any) -> Any:
        """
        Convert a Python value into something the driver can bind.
        """
        return value

    def from_db(self, value: Any) -> Any:
        if value is None:
            return None
        return self.to_python(value)

    def run_validators(self, value: Any) -> None:
        for validator in self.validators:
            validator(value)

    @property
    def has_default(self) -> bool:
        return self.default is not None


class AutoField(Field):
    """
    Auto-incrementing integer field used as default primary key.
    """

    semantic_type = "integer"

    def __init__(self) -> None:
        super().__init__(primary_key=True, nullable=False, db_type="INTEGER")

    def to_python(self, value: Any) -> int | None:
        if value is None:
            return value
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value '{value}' for AutoField") from exc


class IntegerField(Field):
    semantic_type = "integer"

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "INTEGER")
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> int | None:
        if value is None:
            return value
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value '{value}' for field '{self.name}'") from exc


class FloatField(Field):
    semantic_type = "float"

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "REAL")
        super().__init__(**kwargs)

    def to_python(self, value: Any) -> float | None:
        if value is None:
            return value
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid float value '{value}' for field '{self.name}'") from exc


class BooleanField(Field):
    semantic_type = "boolean"

    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", "BOOLEAN")
        kwargs.setdefault("nullable", False)
        super().__init__(default=default, **kwargs)

    def to_python(self, value: Any) -> bool | None:
        if value is None:
            return value
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0"}:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value '{value}'")

    def to_db(self, value: Any) -> int | None:
        if value is None:
            return None
        return 1 if value else 0


class StringField(Field):
    semantic_type = "string"

    def __init__(self, *, max_length: int | None = 255, **kwargs: Any) -> None:
        kwargs.setdefault("db_type", f"VARCHAR({max_length})" if max_length else "TEXT")
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str | None:
        if value is None:
            return value
        result = str(value)
        if self.max_length and len(result) > self.max_length:
            raise ValueError(
                f"Value for field '{self.require_name()}' exceeds max_length {self.max_length}"
            )
        return result

    def from_db(self, value: Any) -> str | None:
        # Stored rows are taken as they are, even when longer than max_length.
        if value is None:
            return None
        return str(value)


class DecimalField(Field):
    """
    Fixed-point number stored with ``decimal_places`` digits after the point
    and at most ``max_digits`` digits overall, e.g. ``decimal(5,2)``.

    Values are bound as text so SQLite never rounds them through a float.
    """

    semantic_type = "decimal"

    def __init__(self, *, max_digits: int, decimal_places: int, **kwargs: Any) -> None:
        if decimal_places > max_digits:
            raise FieldError("decimal_places cannot exceed max_digits")
        kwargs.setdefault("db_type", f"DECIMAL({max_digits},{decimal_places})")
        super().__init__(**kwargs)
        self.max_digits = max_digits
        self.decimal_places = decimal_places
        self._quantum = Decimal(1).scaleb(-decimal_places)

    def to_python(self, value: Any) -> Decimal | None:
        if value is None:
            return value
        try:
            # str() keeps floats read back from the database at their shortest repr.
            number = value if isinstance(value, Decimal) else Decimal(str(value))
            number = number.quantize(self._quantum, rounding=ROUND_HALF_EVEN)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal value '{value}' for field '{self.name}'") from exc
        digits = len(number.as_tuple().digits)
        if digits > self.max_digits:
            raise ValueError(
                f"Value '{value}' for field '{self.name}' exceeds "
                f"decimal({self.max_digits},{self.decimal_places})"
            )
        return number

    def from_db(self, value: Any) -> Decimal | None:
        """
        Read a stored value without rounding it, so the snapshot matches the
        row. Values with fewer places are padded to ``decimal_places``.
        """
        if value is None:
            return None
        try:
            number = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid decimal value '{value}' for field '{self.name}'") from exc
        exponent = number.as_tuple().exponent
        if isinstance(exponent, int) and exponent > -self.decimal_places:
            number = number.quantize(self._quantum)
        return number

    def to_db(self, value: Any) -> str | None:
        if value is None:
            return None
        return str(value)
