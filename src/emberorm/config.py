"""
Named connection strings loaded from JSON settings files and the environment.

Settings files use a ``ConnectionStrings`` section::

    {"ConnectionStrings": {"DefaultConnection": "sqlite:///cookbook.db"}}

An environment variable ``EMBERORM_CONNECTION_<NAME>`` (name upper-cased)
overrides the entry of the same name.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .adapters.base import AdapterConfigurationError
from .utils import get_logger

CONNECTION_STRINGS_SECTION = "ConnectionStrings"
DEFAULT_CONNECTION = "DefaultConnection"
ENV_PREFIX = "EMBERORM_CONNECTION_"

logger = get_logger("config")


class ConfigurationSource:
    """
    Immutable lookup of named connection strings.
    """

    def __init__(self, connection_strings: Optional[Mapping[str, str]] = None, *, origin: str = "memory") -> None:
        self._connection_strings: Dict[str, str] = dict(connection_strings or {})
        self.origin = origin

    @classmethod
    def from_json(cls, path: str | os.PathLike[str], *, environ: Optional[Mapping[str, str]] = None) -> "ConfigurationSource":
        """
        Load a settings file, then apply environment overrides.
        """
        settings_path = Path(path)
        try:
            payload: Any = json.loads(settings_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise AdapterConfigurationError(f"Settings file not found: {settings_path}") from exc
        except json.JSONDecodeError as exc:
            raise AdapterConfigurationError(f"Settings file {settings_path} is not valid JSON: {exc}") from exc

        section = payload.get(CONNECTION_STRINGS_SECTION, {}) if isinstance(payload, dict) else None
        if not isinstance(section, dict):
            raise AdapterConfigurationError(
                f"'{CONNECTION_STRINGS_SECTION}' in {settings_path} must be an object"
            )
        strings = {str(name): str(value) for name, value in section.items()}
        for name, value in _environment_overrides(environ).items():
            existing = next((key for key in strings if key.lower() == name.lower()), name)
            strings[existing] = value
        logger.debug("Loaded %d connection string(s) from %s", len(strings), settings_path)
        return cls(strings, origin=str(settings_path))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ConfigurationSource":
        return cls(_environment_overrides(environ), origin="environment")

    def get_connection_string(self, name: str = DEFAULT_CONNECTION) -> str:
        value = self._connection_strings.get(name)
        if value is None:
            # Environment keys are upper-cased, so match names case-insensitively.
            for key, candidate in self._connection_strings.items():
                if key.lower() == name.lower():
                    value = candidate
                    break
        if not value:
            raise AdapterConfigurationError(
                f"Connection string '{name}' is not configured ({self.origin})"
            )
        return value

    def names(self) -> list[str]:
        return sorted(self._connection_strings)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._connection_strings


def _environment_overrides(environ: Optional[Mapping[str, str]]) -> Dict[str, str]:
    source = os.environ if environ is None else environ
    overrides: Dict[str, str] = {}
    for key, value in source.items():
        if key.startswith(ENV_PREFIX) and value:
            overrides[key[len(ENV_PREFIX) :]] = value
    return overrides
