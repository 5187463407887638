"""Opaque continuation tokens for cursor pagination over a sorted partition."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Dict, Optional

from walletwatch.core.utils.validation import InvalidInput


def encode_token(last_key: Optional[Dict[str, str]]) -> Optional[str]:
    if not last_key:
        return None
    raw = json.dumps({"pk": last_key["pk"], "sk": last_key["sk"]}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_token(token: Optional[str], *, pk: str, sk_prefix: str) -> Optional[Dict[str, str]]:
    """Decode a token and check it points inside ``pk`` / ``sk_prefix``."""
    if not token:
        return None
    padded = token + "=" * (-len(token) % 4)
    try:
        key = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidInput("Malformed continuation token") from exc
    if not isinstance(key, dict) or not isinstance(key.get("pk"), str) or not isinstance(key.get("sk"), str):
        raise InvalidInput("Malformed continuation token")
    if key["pk"] != pk or not key["sk"].startswith(sk_prefix):
        raise InvalidInput("Continuation token does not belong to this query")
    return {"pk": key["pk"], "sk": key["sk"]}
