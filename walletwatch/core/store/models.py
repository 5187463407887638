"""SQL table backing the item store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from walletwatch.extensions import db


class MonitoringItem(db.Model):
    __tablename__ = "watchers_item"
    __table_args__ = (db.Index("ix_watchers_item_pk_type", "pk", "item_type"),)

    pk: Mapped[str] = mapped_column(db.String(191), primary_key=True)
    sk: Mapped[str] = mapped_column(db.String(1024), primary_key=True)
    item_type: Mapped[str | None] = mapped_column(db.String(32))
    # Every attribute except pk/sk, as written by the caller.
    data: Mapped[dict] = mapped_column(db.JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_item(self) -> dict:
        item = dict(self.data or {})
        item["pk"] = self.pk
        item["sk"] = self.sk
        return item
