"""Partition/sort key layout of the monitoring table.

Every record of a user lives under ``USER#<userId>``. Sort keys:

- ``ACTIVITY#<wallet>#<signature>#<13-digit millis>#<eventId>``
- ``READSTATUS#<wallet>#<signature>``
- ``WATCHER#<wallet>#<signature>``
- ``WALLET#<wallet>#<13-digit millis>`` (balance data points)

Zero-padded millis keep lexicographic and chronological order identical.
"""

from __future__ import annotations

from typing import Optional, Tuple

SEPARATOR = "#"
TIMESTAMP_WIDTH = 13
# Largest millis value that still fits the fixed-width recency segment.
MAX_TIMESTAMP_MS = 10**TIMESTAMP_WIDTH - 1

USER_PREFIX = "USER#"
ACTIVITY_PREFIX = "ACTIVITY#"
READ_STATUS_PREFIX = "READSTATUS#"
WATCHER_PREFIX = "WATCHER#"
BALANCE_PREFIX = "WALLET#"

ITEM_TYPE_ACTIVITY = "activity"
ITEM_TYPE_READ_STATUS = "readStatus"
ITEM_TYPE_WATCHER = "watcher"
ITEM_TYPE_BALANCE = "balance"


def _recency(timestamp_ms: int) -> str:
    if not 0 <= timestamp_ms <= MAX_TIMESTAMP_MS:
        raise ValueError(f"timestamp out of range: {timestamp_ms!r}")
    return f"{int(timestamp_ms):0{TIMESTAMP_WIDTH}d}"


def user_pk(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def activity_prefix(wallet_address: str, signature: Optional[str] = None) -> str:
    """Prefix for one (wallet, signature) activity stream, or every stream of a wallet."""
    if signature is None:
        return f"{ACTIVITY_PREFIX}{wallet_address}{SEPARATOR}"
    # Trailing separator: a signature must not match one it merely prefixes.
    return f"{ACTIVITY_PREFIX}{wallet_address}{SEPARATOR}{signature}{SEPARATOR}"


def activity_sk(wallet_address: str, signature: str, timestamp_ms: int, event_id: str) -> str:
    return f"{activity_prefix(wallet_address, signature)}{_recency(timestamp_ms)}{SEPARATOR}{event_id}"


def read_status_sk(wallet_address: str, signature: str) -> str:
    return f"{READ_STATUS_PREFIX}{wallet_address}{SEPARATOR}{signature}"


def watcher_sk(wallet_address: str, signature: str) -> str:
    return f"{WATCHER_PREFIX}{wallet_address}{SEPARATOR}{signature}"


def split_watcher_sk(sk: str) -> Tuple[str, str]:
    """Return ``(wallet, signature)`` from a watcher sort key."""
    parts = sk.split(SEPARATOR, 2)
    if len(parts) < 2 or parts[0] + SEPARATOR != WATCHER_PREFIX:
        raise ValueError(f"not a watcher sort key: {sk!r}")
    wallet_address = parts[1]
    signature = parts[2] if len(parts) > 2 else ""
    return wallet_address, signature


def balance_prefix(wallet_address: str) -> str:
    return f"{BALANCE_PREFIX}{wallet_address}{SEPARATOR}"


def balance_sk(wallet_address: str, timestamp_ms: int) -> str:
    return f"{balance_prefix(wallet_address)}{_recency(timestamp_ms)}"
