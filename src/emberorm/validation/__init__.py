"""
Validation run against instances before they are written.
"""

from .errors import ValidationError
from .pipeline import validate_instance
from .validators import MaxValueValidator, MinValueValidator

__all__ = [
    "ValidationError",
    "validate_instance",
    "MinValueValidator",
    "MaxValueValidator",
]
