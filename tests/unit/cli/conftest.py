"""Fixtures for CLI tests: an isolated project directory with a database."""

from __future__ import annotations

from pathlib import Path

import pytest

from herdsafe.db.connection import Database
from herdsafe.db.repository import Repository
from herdsafe.db.schema import initialize


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    """tmp_path as the working directory, with an initialized database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("COLUMNS", "200")
    for var in ("HERDSAFE_USER", "HERDSAFE_EMBEDDING_MODEL", "HERDSAFE_GENERATION_MODEL"):
        monkeypatch.delenv(var, raising=False)
    conn = Database(tmp_path / ".herdsafe.db").connect()
    initialize(conn)
    conn.close()
    return tmp_path


@pytest.fixture
def db_file(project: Path) -> Path:
    return project / ".herdsafe.db"


@pytest.fixture
def cli_repo(db_file: Path):
    """Repository on the CLI's database, for arranging and checking state."""
    conn = Database(db_file).connect()
    yield Repository(conn)
    conn.close()

