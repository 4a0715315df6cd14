"""Shared JSON serialization utilities for type-safe JSON encoding."""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any


def json_serializer(obj: Any) -> Any:
    """
    Type-safe JSON serializer for structured log output.

    Keeps proper types instead of converting everything to strings:
    - datetime/date → ISO 8601 string
    - timedelta → seconds as float
    - Enums → value
    - sets/frozensets → sorted list
    - Everything else → string (fallback)

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation with proper types
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


__all__ = ["json_serializer"]
