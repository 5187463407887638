import sys
from pathlib import Path

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import scoped_session, sessionmaker
from alembic import command
from alembic.config import Config as AlembicConfig

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from walletwatch import create_app
from walletwatch.core.store import get_store
from walletwatch.core.store import models as store_models
from walletwatch.extensions import db


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, API)")


def _alembic_config() -> AlembicConfig:
    cfg = AlembicConfig()
    cfg.set_main_option("script_location", str(ROOT / "walletwatch" / "migrations"))
    cfg.set_main_option("walletwatch_env", "testing")
    return cfg


@pytest.fixture(scope="session")
def migrated_db():
    """Apply migrations once per session to mirror production schema."""
    cfg = _alembic_config()
    command.upgrade(cfg, "head")
    # Start from an empty table even if an aborted run skipped the downgrade.
    engine = sa.create_engine(create_app("testing").config["SQLALCHEMY_DATABASE_URI"])
    with engine.begin() as conn:
        conn.execute(store_models.MonitoringItem.__table__.delete())
    engine.dispose()
    yield
    try:
        command.downgrade(cfg, "base")
    except Exception:
        # Downgrade is optional for local/CI runs; ignore failures to avoid hiding test results.
        pass


@pytest.fixture()
def app(migrated_db):
    """
    Create a per-test app with an isolated database transaction.

    Each test runs inside one outer transaction; every ``session.commit()``
    only releases a SAVEPOINT, so all writes roll back afterwards and
    partitions never leak between tests.
    """
    app = create_app("testing")
    ctx = app.app_context()
    ctx.push()

    engine = db.engine
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)

    connection = engine.connect()
    transaction = connection.begin()

    original_session = db.session
    session_factory = scoped_session(
        sessionmaker(bind=connection, join_transaction_mode="create_savepoint")
    )
    db.session = session_factory

    try:
        yield app
    finally:
        session_factory.remove()
        transaction.rollback()
        connection.close()
        engine.dispose()
        db.session = original_session
        ctx.pop()


def _enable_sqlite_savepoints(engine) -> None:
    """pysqlite manages BEGIN itself and breaks SAVEPOINT rollback; take over transaction control."""

    @sa.event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @sa.event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def store(app):
    return get_store()


@pytest.fixture()
def frozen_clock(monkeypatch):
    """Pin the server clock used for read checkpoints. Mutate ``clock["now"]`` to advance it."""
    from walletwatch.domains.watchers import services

    clock = {"now": 1_700_000_000_000}
    monkeypatch.setattr(services, "now_millis", lambda: clock["now"])
    return clock
