"""Validation helpers for settings read from the environment."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list given as a list, a JSON array string or a CSV string.

    Raises ValueError for malformed JSON, non-string items and, unless
    ``allow_empty`` is set, for an empty result.
    """
    if isinstance(value, list):
        items = value
    else:
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                items = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON array: {e}") from e
            if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
                raise ValueError("JSON value must be an array of strings")
        else:
            items = [part.strip() for part in stripped.split(",") if part.strip()]

    if not allow_empty and not items:
        raise ValueError("String list value must not be empty")
    return items


def parse_key_prefix(value: str) -> str:
    """Validate a storage namespace prefix such as ``dominoscore_``."""
    if not value or any(ch.isspace() for ch in value):
        raise ValueError("Key prefix must be non-empty and contain no whitespace")
    return value


_STRING_LIST_FIELDS = {"cors_origins"}


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands string-list fields to validators as raw strings.

    pydantic-settings would otherwise JSON-decode list fields itself and
    reject the CSV form before ``parse_string_list`` sees it.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
