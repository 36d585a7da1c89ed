"""
Validation error hierarchy for EmberORM.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

NON_FIELD_ERRORS = "__all__"


class ValidationError(Exception):
    """
    Aggregated validation error storing a field-to-messages mapping.
    ``entity`` names the model the messages belong to when known.
    """

    def __init__(self, errors: Mapping[str, List[str]], *, entity: Optional[str] = None) -> None:
        self.errors: Dict[str, List[str]] = {key: list(messages) for key, messages in errors.items()}
        self.entity = entity
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        segments = []
        for field, messages in self.errors.items():
            prefix = field if field != NON_FIELD_ERRORS else "non-field"
            segments.append(f"{prefix}: {'; '.join(messages)}")
        message = "; ".join(segments)
        if self.entity:
            return f"{self.entity}: {message}"
        return message
