"""CLI commands for preparing the item store and loading activity fixtures.

Usage:
    flask watchers init-store
    flask watchers load-activities activities.jsonl
    flask watchers load-activities - < activities.jsonl

Each line of the input is a JSON object::

    {"userId": "...", "walletAddress": "...", "timestamp": 1700000000000,
     "filters": {"activityTypes": ["ACTIVITY_TOKEN_SWAP"]}, "event": {...}, "id": "<tx sig>"}

``queryString`` (an existing signature) may replace ``filters``.
"""

from __future__ import annotations

import json

import click
from flask.cli import AppGroup

from walletwatch.core.store import get_store
from walletwatch.core.utils.validation import WatcherError

watchers_cli = AppGroup("watchers", help="Watcher item store maintenance.")


@watchers_cli.command("init-store")
def init_store_command():
    """Create the backing table for the configured store backend."""
    get_store().ensure_table()
    click.echo("Item store ready.")


@watchers_cli.command("load-activities")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--stop-on-error", is_flag=True, help="Abort on the first invalid line.")
def load_activities_command(source, stop_on_error: bool):
    """Write activity records from a JSON-lines file."""
    from walletwatch.domains.watchers.services import record_activity

    loaded = 0
    failed = 0
    for lineno, line in enumerate(source, start=1):
        if not line.strip():
            continue
        try:
            row = json.loads(line)
            if not isinstance(row, dict):
                raise ValueError("expected a JSON object")
            record_activity(
                row.get("userId"),
                row.get("walletAddress"),
                row.get("queryString") or row.get("filters"),
                row.get("timestamp"),
                row.get("event"),
                event_id=row.get("id"),
            )
        except (ValueError, WatcherError) as exc:
            failed += 1
            click.echo(f"  ✗ line {lineno}: {exc}", err=True)
            if stop_on_error:
                raise click.Abort() from exc
            continue
        loaded += 1
    click.echo(f"  ✓ Loaded {loaded} activities, {failed} failed")


def register_commands(app):
    """Register CLI commands with the app."""
    app.cli.add_command(watchers_cli)
