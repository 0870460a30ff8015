"""Forward-only migration runner for the herdsafe database schema.

Vec tables (vec_chunks_*) are NOT migration-managed — see herdsafe.db.vectors.
Timestamps are written by the repository as UTC ISO-8601 text with fixed
microsecond precision, so they compare correctly as strings.
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    id              TEXT PRIMARY KEY,
    owner_kind      TEXT NOT NULL CHECK (owner_kind IN ('user', 'system')),
    owner_id        TEXT,
    filename        TEXT NOT NULL,
    original_name   TEXT NOT NULL,
    file_size       INTEGER NOT NULL DEFAULT 0,
    total_chunks    INTEGER NOT NULL DEFAULT 0,
    description     TEXT NOT NULL DEFAULT '',
    is_system       INTEGER NOT NULL DEFAULT 0,
    uploaded_at     TEXT NOT NULL,
    CHECK ((owner_kind = 'system') = (owner_id IS NULL))
);

CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_kind, owner_id);

-- At most one shared reference document per filename.
CREATE UNIQUE INDEX IF NOT EXISTS idx_documents_system_filename
    ON documents(filename) WHERE is_system = 1;

CREATE TABLE IF NOT EXISTS chunks (
    document_id     TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index     INTEGER NOT NULL,
    text            TEXT NOT NULL,
    token_count     INTEGER NOT NULL DEFAULT 0,
    embedding_model TEXT,
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);

CREATE TABLE IF NOT EXISTS animals (
    id                  TEXT PRIMARY KEY,
    tag_id              TEXT NOT NULL UNIQUE,
    owner_id            TEXT NOT NULL,
    species             TEXT NOT NULL,
    breed               TEXT NOT NULL DEFAULT '',
    genetic_lineage     TEXT NOT NULL DEFAULT '',
    date_of_birth       TEXT,
    health_score        INTEGER NOT NULL DEFAULT 100
                        CHECK (health_score BETWEEN 0 AND 100),
    status              TEXT NOT NULL DEFAULT 'HEALTHY'
                        CHECK (status IN ('HEALTHY', 'WITHDRAWAL_LOCK', 'QUARANTINE')),
    withdrawal_ends_at  TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    CHECK ((status = 'WITHDRAWAL_LOCK') = (withdrawal_ends_at IS NOT NULL))
);

CREATE INDEX IF NOT EXISTS idx_animals_owner ON animals(owner_id);
CREATE INDEX IF NOT EXISTS idx_animals_lock ON animals(status, withdrawal_ends_at);

CREATE TABLE IF NOT EXISTS medical_logs (
    id              TEXT PRIMARY KEY,
    animal_id       TEXT NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
    medicine_name   TEXT NOT NULL,
    dosage          TEXT NOT NULL DEFAULT '',
    administered_at TEXT NOT NULL,
    withdrawal_days INTEGER NOT NULL DEFAULT 0 CHECK (withdrawal_days >= 0),
    notes           TEXT NOT NULL DEFAULT '',
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS products (
    id                  TEXT PRIMARY KEY,
    animal_id           TEXT NOT NULL REFERENCES animals(id) ON DELETE CASCADE,
    seller_id           TEXT NOT NULL,
    product_type        TEXT NOT NULL,
    total_quantity      REAL NOT NULL CHECK (total_quantity > 0),
    quantity_sold       REAL NOT NULL DEFAULT 0,
    unit                TEXT NOT NULL DEFAULT 'liters',
    price_per_unit      REAL NOT NULL CHECK (price_per_unit > 0),
    min_order_quantity  REAL NOT NULL DEFAULT 1,
    description         TEXT NOT NULL DEFAULT '',
    is_verified_safe    INTEGER NOT NULL CHECK (is_verified_safe = 1),
    created_at          TEXT NOT NULL
);

-- Append-only audit trail: medical logs are never edited or removed on their own.
CREATE TRIGGER IF NOT EXISTS medical_logs_no_update
BEFORE UPDATE ON medical_logs
BEGIN
    SELECT RAISE(ABORT, 'medical_logs is append-only');
END;
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied schema version (0 for a fresh database)."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row and row[0] is not None else 0
