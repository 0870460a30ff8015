"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Use litellm's bundled model cost map; its background network fetch can
# deadlock test collection when offline.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

from datetime import datetime, timezone

import pytest

from herdsafe.db.connection import Database
from herdsafe.db.repository import Repository
from herdsafe.db.schema import initialize

EMBED_MODEL = "huggingface/sentence-transformers/all-MiniLM-L6-v2"


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".herdsafe.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def hf_key(monkeypatch):
    monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf-test-key")


class FrozenClock:
    """Settable clock for time-dependent bio-safety tests."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FrozenClock()
