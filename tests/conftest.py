"""
Shared pytest fixtures for the BuildTrack test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - registry: the built field registry
    - stores: database-backed table stores
    - orchestrator / exporter: engine objects over those stores
"""

import pytest

from buildtrack import create_app
from buildtrack.models import db as _db
from buildtrack.services.data_exchange import (
    ExportEngine,
    ImportOrchestrator,
    build_store_registry,
    get_registry,
)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Engine fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def registry():
    return get_registry()


@pytest.fixture()
def stores():
    return build_store_registry()


@pytest.fixture()
def orchestrator(registry, stores):
    return ImportOrchestrator(stores, registry, sequence_floor=90000)


@pytest.fixture()
def exporter(registry, stores):
    return ExportEngine(stores, registry)
