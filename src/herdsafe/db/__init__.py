"""herdsafe database layer."""

from herdsafe.db.connection import Database
from herdsafe.db.migrations import MIGRATIONS, run_migrations
from herdsafe.db.repository import Repository
from herdsafe.db.schema import initialize
from herdsafe.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
