"""Item store contract shared by the SQL and DynamoDB backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

Item = Dict[str, Any]


@dataclass
class Page:
    """One slice of a prefix query.

    ``last_key`` is the ``{"pk", "sk"}`` key of the last returned item when more
    items may follow, otherwise ``None``.
    """

    items: List[Item] = field(default_factory=list)
    last_key: Optional[Dict[str, str]] = None


class ItemStore:
    """Single-table key/value store addressed by ``(pk, sk)``.

    Items sharing a partition key are ordered by sort key. Backends raise
    ``StoreUnavailable`` when the underlying call fails.
    """

    def get_item(self, pk: str, sk: str) -> Optional[Item]:
        raise NotImplementedError

    def put_item(self, item: Item) -> None:
        """Insert or fully replace the item stored under ``item["pk"], item["sk"]``."""
        raise NotImplementedError

    def query_prefix(
        self,
        pk: str,
        sk_prefix: str,
        *,
        limit: int,
        descending: bool = True,
        start_key: Optional[Dict[str, str]] = None,
    ) -> Page:
        raise NotImplementedError

    def ensure_table(self) -> None:
        """Create the backing table if it does not exist yet."""
        raise NotImplementedError


__all__ = ["Item", "ItemStore", "Page"]
