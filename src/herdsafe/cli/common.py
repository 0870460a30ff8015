"""Helpers shared by the herdsafe CLI commands."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console

from herdsafe.cli.errors import describe_error, err_config, err_no_db, err_no_user
from herdsafe.config import ConfigError, HerdsafeConfig, load_config
from herdsafe.db.connection import Database
from herdsafe.db.models import User
from herdsafe.db.repository import Repository
from herdsafe.db.schema import initialize
from herdsafe.errors import HerdsafeError
from herdsafe.ingest.segmenter import TextSegmenter
from herdsafe.rag.embedder import EmbeddingClient

console = Console()

USER_ENV = "HERDSAFE_USER"


def load_cfg() -> HerdsafeConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def db_path(cfg: HerdsafeConfig, override: Path | None) -> Path:
    return override if override is not None else Path(cfg.storage.database)


def open_db(path: Path, *, must_exist: bool = True) -> sqlite3.Connection:
    if must_exist and not path.exists():
        console.print(err_no_db(str(path)))
        raise typer.Exit(1)
    conn = Database(path).connect()
    initialize(conn)
    return conn


def open_repo(path: Path, *, must_exist: bool = True) -> tuple[sqlite3.Connection, Repository]:
    conn = open_db(path, must_exist=must_exist)
    return conn, Repository(conn)


def acting_user(user_id: str | None) -> User:
    user_id = (user_id or "").strip()
    if not user_id:
        console.print(err_no_user())
        raise typer.Exit(1)
    return User(user_id)


def make_embedder(cfg: HerdsafeConfig) -> EmbeddingClient:
    return EmbeddingClient(
        cfg.embedding.model,
        timeout=cfg.embedding.timeout,
        num_retries=cfg.embedding.num_retries,
    )


def make_segmenter(cfg: HerdsafeConfig) -> TextSegmenter:
    return TextSegmenter(chunk_size=cfg.chunking.chunk_size, overlap=cfg.chunking.overlap)


def fail(exc: HerdsafeError) -> NoReturn:
    """Print an actionable message for *exc* and exit with status 1."""
    console.print(describe_error(exc))
    raise typer.Exit(1) from exc
