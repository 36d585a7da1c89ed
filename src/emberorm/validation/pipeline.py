"""
Validation pipeline used by the unit of work before INSERT and UPDATE.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..core.fields import AutoField, Field
from ..core.model import Model
from ..core.relations import ForeignKey
from .errors import NON_FIELD_ERRORS, ValidationError


def validate_instance(instance: Model) -> None:
    errors: Dict[str, List[str]] = {}

    for field in instance._meta.get_fields():
        field_name = field.require_name()
        try:
            _validate_field(field, getattr(instance, field_name, None), instance)
        except ValidationError as exc:
            _merge_errors(errors, exc.errors)
        except ValueError as exc:
            errors.setdefault(field_name, []).append(str(exc))

    try:
        instance.clean()
    except ValidationError as exc:
        _merge_errors(errors, exc.errors)
    except ValueError as exc:
        errors.setdefault(NON_FIELD_ERRORS, []).append(str(exc))

    if errors:
        raise ValidationError(errors, entity=instance.__class__.__name__)


def _validate_field(field: Field, value: Any, instance: Model) -> None:
    if value is None:
        if field.primary_key and isinstance(field, AutoField):
            return
        # A foreign key linked to an unsaved parent is filled in at insert time.
        if isinstance(field, ForeignKey) and field.linked_parent(instance) is not None:
            return
        if not field.nullable:
            raise ValidationError({field.require_name(): ["This field cannot be null."]})
        return

    try:
        field.run_validators(value)
    except ValueError as exc:
        raise ValidationError({field.require_name(): [str(exc)]}) from exc


def _merge_errors(target: Dict[str, List[str]], source: Dict[str, List[str]]) -> None:
    for field, messages in source.items():
        target.setdefault(field, []).extend(messages)
