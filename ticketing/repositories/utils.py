"""JSONB helpers shared by the repositories."""

import json
from typing import Any, Optional, Union

JsonValue = Union[dict, list]


def ensure_json(
    value: Optional[Union[str, JsonValue]], default: Optional[JsonValue] = None
) -> Optional[JsonValue]:
    """
    Decode a JSONB column into a dict or list.

    asyncpg hands JSONB back as text unless a codec is registered on the
    pool; decoded values pass through. NULL becomes ``default``.
    """
    if value is None:
        return default
    if isinstance(value, str):
        decoded = json.loads(value)
        return default if decoded is None else decoded
    if not isinstance(value, (dict, list)):
        raise TypeError(f"Unsupported JSONB value of type {type(value).__name__}")
    return value


def to_jsonb(value: Any) -> Optional[str]:
    """Serialize a value for a ``$n::jsonb`` parameter (UUIDs and datetimes as text)."""
    if value is None:
        return None
    return json.dumps(value, default=str)
