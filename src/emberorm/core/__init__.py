"""
Core building blocks for EmberORM models and metadata handling.
"""

from .fields import (
    AutoField,
    BooleanField,
    DecimalField,
    Field,
    FloatField,
    IntegerField,
    StringField,
)
from .model import Model, ModelConfigurationError, ModelMeta, ModelOptions
from .registry import (
    EntityTypeDescriptor,
    FieldDescriptor,
    ForeignKeyDescriptor,
    NavigationDescriptor,
    UnmappedTypeError,
    describe,
)
from .relations import Collection, ForeignKey, RelationshipError, dependency_order

__all__ = [
    "AutoField",
    "BooleanField",
    "Collection",
    "DecimalField",
    "EntityTypeDescriptor",
    "Field",
    "FieldDescriptor",
    "FloatField",
    "ForeignKey",
    "ForeignKeyDescriptor",
    "IntegerField",
    "Model",
    "ModelConfigurationError",
    "ModelMeta",
    "ModelOptions",
    "NavigationDescriptor",
    "RelationshipError",
    "StringField",
    "UnmappedTypeError",
    "dependency_order",
    "describe",
]
