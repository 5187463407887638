"""SQLAlchemy implementation of the item store."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from walletwatch.core.store.base import Item, ItemStore, Page
from walletwatch.core.store.models import MonitoringItem
from walletwatch.core.utils.validation import StoreUnavailable
from walletwatch.extensions import db

logger = logging.getLogger(__name__)


# Default collations fold case/accents (MySQL) or ignore punctuation (Postgres
# locales); keys must compare bytewise. SQLite's default BINARY already does.
_BINARY_COLLATIONS = {"postgresql": "C", "mysql": "utf8mb4_bin"}


def _prefix_upper_bound(prefix: str) -> str:
    """Smallest string greater than every string starting with ``prefix``."""
    return prefix[:-1] + chr(ord(prefix[-1]) + 1)


class SqlItemStore(ItemStore):
    """Items stored as rows keyed by ``(pk, sk)`` with a JSON attribute column.

    Prefix queries are range scans on ``sk`` rather than ``LIKE``. Matching is
    case-sensitive on SQLite, PostgreSQL and MySQL/MariaDB; other dialects use
    their default collation.
    """

    def _sort_column(self):
        column = MonitoringItem.sk
        collation = _BINARY_COLLATIONS.get(db.session.get_bind().dialect.name)
        return column.collate(collation) if collation else column

    def get_item(self, pk: str, sk: str) -> Optional[Item]:
        try:
            row = db.session.get(MonitoringItem, (pk, sk))
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Item lookup failed for %s / %s", pk, sk)
            raise StoreUnavailable("item lookup failed") from exc
        return row.to_item() if row else None

    def put_item(self, item: Item) -> None:
        pk, sk = item["pk"], item["sk"]
        data = {k: v for k, v in item.items() if k not in ("pk", "sk")}
        row = MonitoringItem(pk=pk, sk=sk, item_type=data.get("type"), data=data)
        try:
            db.session.merge(row)
            try:
                db.session.commit()
            except IntegrityError:
                # Lost a first-insert race; the row exists now, overwrite it.
                db.session.rollback()
                db.session.merge(row)
                db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Item write failed for %s / %s", pk, sk)
            raise StoreUnavailable("item write failed") from exc

    def query_prefix(
        self,
        pk: str,
        sk_prefix: str,
        *,
        limit: int,
        descending: bool = True,
        start_key: Optional[Dict[str, str]] = None,
    ) -> Page:
        if not sk_prefix:
            raise ValueError("sk_prefix must not be empty")
        column = self._sort_column()
        query = MonitoringItem.query.filter(
            MonitoringItem.pk == pk,
            column >= sk_prefix,
            column < _prefix_upper_bound(sk_prefix),
        )
        if start_key:
            start_sk = start_key["sk"]
            query = query.filter(column < start_sk if descending else column > start_sk)
        query = query.order_by(column.desc() if descending else column.asc())
        try:
            # One extra row tells whether a continuation key is needed.
            rows = query.limit(limit + 1).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Prefix query failed for %s / %s", pk, sk_prefix)
            raise StoreUnavailable("prefix query failed") from exc

        has_more = len(rows) > limit
        rows = rows[:limit]
        last_key = {"pk": rows[-1].pk, "sk": rows[-1].sk} if has_more and rows else None
        return Page(items=[row.to_item() for row in rows], last_key=last_key)

    def ensure_table(self) -> None:
        MonitoringItem.__table__.create(db.engine, checkfirst=True)


__all__ = ["SqlItemStore"]
