from __future__ import annotations

from typing import Any, Mapping

from .errors import ConfigurationError
from .models import LDAPConfig


class FieldMapper:
    """Rename record keys between an application model and directory attributes.

    ``config.model`` maps directory attribute -> external field name, e.g.
    ``{"sn": "name.last", "givenName": "name.first", "mail": "email"}``.
    Conversion is a projection: keys outside the mapping are dropped, and so
    are mapped keys missing from the input. Nested application objects are
    expected to be flattened to dotted keys by the caller.
    """

    def __init__(self, config: LDAPConfig) -> None:
        self.config = config

    def _pairs(self) -> list[tuple[str, str]]:
        if not self.config.model:
            raise ConfigurationError("No field mapping (model) configured")
        return list(self.config.model.items())

    def to_external(self, record: Mapping[str, Any]) -> dict[str, Any]:
        return {ext: record[attr] for attr, ext in self._pairs() if attr in record}

    def to_directory(self, record: Mapping[str, Any]) -> dict[str, Any]:
        return {attr: record[ext] for attr, ext in self._pairs() if ext in record}

    def convert(self, record: Mapping[str, Any], to_directory: bool = False) -> dict[str, Any]:
        if to_directory:
            return self.to_directory(record)
        return self.to_external(record)
