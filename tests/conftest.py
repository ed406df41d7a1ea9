"""Shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.session import SessionStore
from fakes import HEALTHY_SCRIPT, FakeBackend


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def healthy_backend():
    return FakeBackend(HEALTHY_SCRIPT)


@pytest.fixture
def make_client(tmp_path):
    """Build a TestClient around a given backend; returns (client, store)."""

    def _make(backend, live_run_seconds=0.05):
        store = SessionStore()
        app = create_app(
            api_key="test-key",
            backend=backend,
            store=store,
            upload_dir=str(tmp_path / "uploads"),
            live_run_seconds=live_run_seconds,
        )
        return TestClient(app), store

    return _make
