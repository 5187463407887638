"""Watcher services: activity listing, unread annotation and read checkpoints."""

from __future__ import annotations

import logging
import math
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from flask import current_app

from walletwatch.core.store import ItemStore, get_store
from walletwatch.core.store.keys import (
    ITEM_TYPE_ACTIVITY,
    ITEM_TYPE_READ_STATUS,
    MAX_TIMESTAMP_MS,
    WATCHER_PREFIX,
    activity_prefix,
    activity_sk,
    balance_prefix,
    read_status_sk,
    split_watcher_sk,
    user_pk,
)
from walletwatch.core.utils.pagination import decode_token, encode_token
from walletwatch.core.utils.validation import InvalidInput, clamp_limit, require_fields
from walletwatch.domains.watchers.schemas.watcher_schemas import ActivityFilters
from walletwatch.domains.watchers.signature import build_signature, canonicalize

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
WATCHER_ACTIVITY_PREVIEW = 10
LAMPORTS_PER_SOL = 1_000_000_000


def now_millis() -> int:
    return int(time.time() * 1000)


def to_millis(value: Any) -> int:
    """Epoch millis from an int/float/Decimal, a digit string or an ISO-8601 string.

    Unparseable and non-finite values count as 0 so they never read as unread.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        return int(value) if value.is_finite() else 0
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        text = value.strip()
        if text.isdecimal():
            return int(text)
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return 0
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    return 0


def _page_limits() -> tuple[int, int]:
    config = current_app.config
    return (
        int(config.get("WATCHERS_DEFAULT_PAGE_SIZE", DEFAULT_PAGE_SIZE)),
        int(config.get("WATCHERS_MAX_PAGE_SIZE", MAX_PAGE_SIZE)),
    )


def _iter_prefix(store: ItemStore, pk: str, prefix: str, batch: int = 100) -> Iterator[dict]:
    start_key = None
    while True:
        page = store.query_prefix(pk, prefix, limit=batch, descending=False, start_key=start_key)
        yield from page.items
        if not page.last_key:
            return
        start_key = page.last_key


def _last_read_timestamp(store: ItemStore, pk: str, wallet_address: str, signature: str) -> int:
    checkpoint = store.get_item(pk, read_status_sk(wallet_address, signature))
    if not checkpoint:
        return 0
    return to_millis(checkpoint.get("lastReadTimestamp"))


def annotate(activity: Mapping[str, Any], last_read_timestamp: int) -> Dict[str, Any]:
    annotated = dict(activity)
    annotated["isUnread"] = to_millis(activity.get("timestamp")) > last_read_timestamp
    return annotated


def fetch_recent_activities(
    user_id: str,
    wallet_address: str,
    query_signature: str,
    limit: Optional[int] = None,
    *,
    store: Optional[ItemStore] = None,
) -> Dict[str, Any]:
    """Most recent activities of one watcher stream, each flagged ``isUnread``.

    The checkpoint and the activities are two separate reads; an acknowledgment
    landing between them can misclassify a record for this one response.
    """
    require_fields(
        {"userId": user_id, "walletAddress": wallet_address, "queryString": query_signature},
        "userId",
        "walletAddress",
        "queryString",
    )
    query_signature = canonicalize(query_signature)
    default_size, max_size = _page_limits()
    limit = clamp_limit(limit, default=default_size, maximum=max_size)
    store = store or get_store()

    pk = user_pk(user_id)
    last_read = _last_read_timestamp(store, pk, wallet_address, query_signature)
    page = store.query_prefix(pk, activity_prefix(wallet_address, query_signature), limit=limit)
    return {
        "activities": [annotate(item, last_read) for item in page.items],
        "last_read_timestamp": last_read,
    }


def fetch_activities_page(
    wallet_address: str,
    user_id: str,
    filters: Union[ActivityFilters, Mapping[str, Any], None] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    last_key: Optional[str] = None,
    *,
    store: Optional[ItemStore] = None,
) -> Dict[str, Any]:
    """One page of a watcher stream, newest first, with an opaque continuation token."""
    require_fields({"walletAddress": wallet_address, "userId": user_id}, "walletAddress", "userId")
    default_size, max_size = _page_limits()
    page_size = clamp_limit(page_size, default=default_size, maximum=max_size)
    signature = build_signature(filters)
    prefix = activity_prefix(wallet_address, signature)
    pk = user_pk(user_id)
    start_key = decode_token(last_key, pk=pk, sk_prefix=prefix)
    store = store or get_store()

    result = store.query_prefix(pk, prefix, limit=page_size, start_key=start_key)
    return {
        "activities": result.items,
        "last_key": encode_token(result.last_key),
        "page": page,
        "page_size": page_size,
        "query_signature": signature,
    }


def mark_read(
    user_id: str,
    wallet_address: str,
    query_signature: str,
    *,
    now_ms: Optional[int] = None,
    store: Optional[ItemStore] = None,
) -> int:
    """Overwrite the checkpoint of a watcher stream with the current server time.

    Plain overwrite: concurrent calls resolve in store arrival order.
    """
    require_fields(
        {"userId": user_id, "walletAddress": wallet_address, "queryString": query_signature},
        "userId",
        "walletAddress",
        "queryString",
    )
    query_signature = canonicalize(query_signature)
    store = store or get_store()
    timestamp = now_millis() if now_ms is None else int(now_ms)

    store.put_item(
        {
            "pk": user_pk(user_id),
            "sk": read_status_sk(wallet_address, query_signature),
            "type": ITEM_TYPE_READ_STATUS,
            "userId": user_id,
            "walletAddress": wallet_address,
            "queryString": query_signature,
            "lastReadTimestamp": timestamp,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
    )
    logger.info("Marked %s/%s read at %s for user %s", wallet_address, query_signature, timestamp, user_id)
    return timestamp


def unread_counts(user_id: str, *, store: Optional[ItemStore] = None) -> Dict[str, Any]:
    """Which of a user's watchers have activity newer than their checkpoint."""
    require_fields({"userId": user_id}, "userId")
    store = store or get_store()
    pk = user_pk(user_id)

    details: List[Dict[str, Any]] = []
    for watcher in _iter_prefix(store, pk, WATCHER_PREFIX):
        try:
            wallet_address, signature = split_watcher_sk(watcher["sk"])
        except ValueError:
            logger.warning("Skipping watcher with malformed key %r", watcher.get("sk"))
            continue
        last_read = _last_read_timestamp(store, pk, wallet_address, signature)
        latest = store.query_prefix(pk, activity_prefix(wallet_address, signature), limit=1).items
        has_unread = bool(latest) and to_millis(latest[0].get("timestamp")) > last_read
        details.append(
            {
                "wallet_address": wallet_address,
                "query_string": signature,
                "has_unread": has_unread,
                "last_read_timestamp": last_read,
            }
        )
    return {
        "unread_count": sum(1 for d in details if d["has_unread"]),
        "watcher_details": details,
    }


def list_watchers(user_id: str, *, store: Optional[ItemStore] = None) -> List[Dict[str, Any]]:
    """Watchers of a user with their latest balance point and recent activities."""
    require_fields({"userId": user_id}, "userId")
    store = store or get_store()
    pk = user_pk(user_id)

    watchers: List[Dict[str, Any]] = []
    for watcher in _iter_prefix(store, pk, WATCHER_PREFIX):
        wallet_address = watcher.get("walletAddress")
        if not wallet_address:
            try:
                wallet_address, _ = split_watcher_sk(watcher["sk"])
            except ValueError:
                logger.warning("Skipping watcher with malformed key %r", watcher.get("sk"))
                continue
        entry = dict(watcher)
        balances = store.query_prefix(pk, balance_prefix(wallet_address), limit=1).items
        if balances:
            point = balances[0]
            entry["lastDataPoint"] = {
                "solBalance": int(point.get("lamports") or 0) / LAMPORTS_PER_SOL,
                "timestamp": to_millis(point.get("timestamp")),
            }
        entry["lastActivity"] = store.query_prefix(
            pk, activity_prefix(wallet_address), limit=WATCHER_ACTIVITY_PREVIEW
        ).items
        watchers.append(entry)
    return watchers


def record_activity(
    user_id: str,
    wallet_address: str,
    query: Union[str, ActivityFilters, Mapping[str, Any], None],
    timestamp_ms: int,
    event: Any = None,
    event_id: Optional[str] = None,
    *,
    store: Optional[ItemStore] = None,
) -> Dict[str, Any]:
    """Write one activity record. Used by the loader CLI; live ingestion happens elsewhere."""
    require_fields({"userId": user_id, "walletAddress": wallet_address}, "userId", "walletAddress")
    if isinstance(query, str):
        signature = canonicalize(query)
    else:
        signature = build_signature(query)
    timestamp = to_millis(timestamp_ms)
    if not 0 < timestamp <= MAX_TIMESTAMP_MS:
        raise InvalidInput(f"timestamp must be epoch millis in 1..{MAX_TIMESTAMP_MS}, got {timestamp_ms!r}")
    store = store or get_store()

    item = {
        "pk": user_pk(user_id),
        "sk": activity_sk(wallet_address, signature, timestamp, event_id or uuid.uuid4().hex),
        "type": ITEM_TYPE_ACTIVITY,
        "userId": user_id,
        "walletAddress": wallet_address,
        "queryString": signature,
        "timestamp": timestamp,
        "event": event,
    }
    store.put_item(item)
    return item


__all__ = [
    "annotate",
    "fetch_activities_page",
    "fetch_recent_activities",
    "list_watchers",
    "mark_read",
    "now_millis",
    "record_activity",
    "to_millis",
    "unread_counts",
]
