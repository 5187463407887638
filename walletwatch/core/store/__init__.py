"""Item store backends and the per-app store accessor."""

from __future__ import annotations

from flask import Flask, current_app

from walletwatch.core.store.base import Item, ItemStore, Page

STORE_EXTENSION_KEY = "watchers_store"


def build_store(app: Flask) -> ItemStore:
    """Instantiate the backend named by ``WATCHERS_STORE_BACKEND``."""
    backend = (app.config.get("WATCHERS_STORE_BACKEND") or "sql").lower()
    if backend == "sql":
        from walletwatch.core.store.sql_store import SqlItemStore

        return SqlItemStore()
    if backend == "dynamodb":
        from walletwatch.core.store.dynamo_store import DynamoItemStore

        return DynamoItemStore(
            app.config["WATCHERS_DYNAMODB_TABLE"],
            region_name=app.config.get("AWS_REGION"),
            endpoint_url=app.config.get("DYNAMODB_ENDPOINT_URL"),
        )
    raise ValueError(f"Unknown WATCHERS_STORE_BACKEND: {backend!r}")


def init_store(app: Flask) -> None:
    app.extensions[STORE_EXTENSION_KEY] = build_store(app)


def get_store() -> ItemStore:
    return current_app.extensions[STORE_EXTENSION_KEY]


__all__ = ["Item", "ItemStore", "Page", "build_store", "get_store", "init_store"]
