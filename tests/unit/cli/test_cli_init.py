"""Tests for herdsafe init, version and the top-level app."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from herdsafe.cli.main import app
from herdsafe.db.connection import Database

runner = CliRunner()


def test_init_creates_project(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert (tmp_path / ".herdsafe.db").exists()
    assert (tmp_path / "herdsafe.yaml").exists()
    assert (tmp_path / ".herdsafe" / "uploads").is_dir()
    assert "Next steps" in result.output


def test_init_schema_is_usable(tmp_path: Path) -> None:
    runner.invoke(app, ["init", str(tmp_path)])
    with Database(tmp_path / ".herdsafe.db") as conn:
        tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
    assert {"documents", "chunks", "animals", "medical_logs", "products"} <= tables


def test_init_is_idempotent(tmp_path: Path) -> None:
    runner.invoke(app, ["init", str(tmp_path)])
    (tmp_path / "herdsafe.yaml").write_text("retrieval:\n  top_k: 5\n", encoding="utf-8")

    result = runner.invoke(app, ["init", str(tmp_path)])

    assert result.exit_code == 0
    assert "already present" in result.output
    assert "top_k: 5" in (tmp_path / "herdsafe.yaml").read_text(encoding="utf-8")


def test_init_updates_existing_gitignore(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("__pycache__/\n", encoding="utf-8")
    runner.invoke(app, ["init", str(tmp_path)])
    text = (tmp_path / ".gitignore").read_text(encoding="utf-8")
    assert ".herdsafe.db" in text
    assert ".herdsafe/" in text


def test_init_leaves_missing_gitignore_alone(tmp_path: Path) -> None:
    runner.invoke(app, ["init", str(tmp_path)])
    assert not (tmp_path / ".gitignore").exists()


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("herdsafe ")


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "herdsafe" in result.output


def test_no_args_shows_help() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("ask", "diagnose", "docs", "animals", "market"):
        assert command in result.output
