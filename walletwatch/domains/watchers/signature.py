"""Canonical query signatures for watcher filter sets.

A signature is ``v1:`` followed by compact, key-sorted JSON of the normalized
filters. Equal filter sets always serialize identically, whatever order the
client sent activity types in, so checkpoints and activity streams written
under one client version stay addressable from the next.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Union

from pydantic import ValidationError

from walletwatch.core.utils.validation import InvalidInput
from walletwatch.domains.watchers.schemas.watcher_schemas import ActivityFilters

SIGNATURE_VERSION = "v1"
_PREFIX = f"{SIGNATURE_VERSION}:"


def build_signature(filters: Union[ActivityFilters, Mapping[str, Any], None]) -> str:
    if filters is None:
        filters = ActivityFilters()
    elif not isinstance(filters, ActivityFilters):
        try:
            filters = ActivityFilters.model_validate(dict(filters))
        except ValidationError as exc:
            raise InvalidInput(f"Invalid filters: {exc.error_count()} error(s)") from exc
    payload = filters.model_dump(by_alias=True)
    payload["minAmount"] = float(payload["minAmount"])
    return _PREFIX + json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def parse_signature(signature: str) -> ActivityFilters:
    if not signature or not signature.startswith(_PREFIX):
        raise InvalidInput("Unsupported query signature")
    try:
        payload = json.loads(signature[len(_PREFIX):])
    except ValueError as exc:
        raise InvalidInput("Malformed query signature") from exc
    if not isinstance(payload, dict):
        raise InvalidInput("Malformed query signature")
    try:
        return ActivityFilters.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInput("Malformed query signature") from exc


def canonicalize(signature: str) -> str:
    """Rewrite a parseable signature to the exact form ``build_signature`` emits.

    Keys are built from the returned string, so ``v1:{"activityTypes":["B","A"]}``
    and its sorted twin address the same checkpoint and activity stream.
    """
    return build_signature(parse_signature(signature))


def is_canonical(signature: str) -> bool:
    """True when ``signature`` is exactly what ``build_signature`` would emit for it."""
    try:
        return canonicalize(signature) == signature
    except InvalidInput:
        return False


__all__ = ["SIGNATURE_VERSION", "build_signature", "canonicalize", "is_canonical", "parse_signature"]
