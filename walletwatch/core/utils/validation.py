"""Error taxonomy and input validation helpers."""

from __future__ import annotations

from typing import Any, Mapping


class WatcherError(Exception):
    """Base error for the read-tracker."""


class InvalidInput(WatcherError, ValueError):
    """A required parameter is missing or malformed. Raised before any store call."""


class StoreUnavailable(WatcherError):
    """The backing item store raised while serving a request."""


def require_fields(data: Mapping[str, Any], *fields: str) -> None:
    missing = [field for field in fields if field not in data or data[field] in (None, "")]
    if missing:
        raise InvalidInput(f"Missing required field: {', '.join(missing)}")


def clamp_limit(value: Any, *, default: int, maximum: int) -> int:
    """Coerce a page size/limit to an int in ``[1, maximum]``."""
    if value in (None, ""):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"Expected a positive integer, got {value!r}") from exc
    if number < 1:
        raise InvalidInput(f"Expected a positive integer, got {value!r}")
    return min(number, maximum)
