"""Repository pattern for all herdsafe database operations.

Single interface for: documents, chunks (+ sqlite-vec embeddings), animals,
medical logs and products. Implements every Protocol in herdsafe.db.protocols.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone

from herdsafe.db.models import (
    SYSTEM,
    Animal,
    BioSafetyStatus,
    Chunk,
    Document,
    MedicalLog,
    NewProduct,
    Owner,
    Product,
    SystemReserved,
    User,
    utcnow,
)
from herdsafe.db.vectors import (
    ensure_vec_table,
    model_to_slug,
    vec_dimensions,
    vec_table_exists,
    vec_table_name,
)


class Repository:
    """Data access layer for all herdsafe database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see herdsafe.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def create_document(self, document: Document) -> str:
        """Insert a document record and return its id.

        Raises:
            sqlite3.IntegrityError: If a system document with the same
                filename already exists.
        """
        kind, owner_id = _owner_columns(document.owner)
        uploaded_at = document.uploaded_at or utcnow()
        self._conn.execute(
            """
            INSERT INTO documents (id, owner_kind, owner_id, filename, original_name,
                                   file_size, total_chunks, description, is_system, uploaded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                document.id,
                kind,
                owner_id,
                document.filename,
                document.original_name,
                document.file_size,
                document.total_chunks,
                document.description,
                int(document.is_system),
                _ts(uploaded_at),
            ),
        )
        self._conn.commit()
        document.uploaded_at = uploaded_at
        return document.id

    def get_document(self, document_id: str) -> Document | None:
        row = self._conn.execute(
            "SELECT * FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def get_documents_by_owner(self, owner: Owner) -> list[Document]:
        """Return the owner's documents, newest first."""
        kind, owner_id = _owner_columns(owner)
        rows = self._conn.execute(
            """
            SELECT * FROM documents
            WHERE owner_kind = ? AND owner_id IS ?
            ORDER BY uploaded_at DESC
            """,
            (kind, owner_id),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def list_documents(self) -> list[Document]:
        rows = self._conn.execute(
            "SELECT * FROM documents ORDER BY uploaded_at DESC"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def delete_document(self, document_id: str) -> bool:
        """Delete a document; its chunks cascade, its embeddings are removed here."""
        self._delete_embeddings_for(
            "SELECT rowid, embedding_model FROM chunks WHERE document_id = ?", (document_id,)
        )
        cur = self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def create_chunks_batch(self, chunks: list[Chunk], embedding_model: str) -> list[int]:
        """Insert chunks and their embeddings in one transaction.

        Embeddings go to the vec table for *embedding_model*, created on first
        use with the dimension of the first vector. Returns the new rowids and
        sets ``chunk.id`` on each input.

        Raises:
            ValueError: If the vectors do not match the existing table dimension.
        """
        if not chunks:
            return []

        table: str | None = None
        first = next((c.embedding for c in chunks if c.embedding), None)
        if first is not None:
            slug = model_to_slug(embedding_model)
            existing_dims = vec_dimensions(self._conn, vec_table_name(slug))
            if existing_dims is not None and existing_dims != len(first):
                raise ValueError(
                    f"Embedding dimension mismatch for '{embedding_model}': "
                    f"store has {existing_dims}, got {len(first)}."
                )
            table = ensure_vec_table(self._conn, slug, len(first))

        now = utcnow()
        rowids: list[int] = []
        with self._conn:
            for chunk in chunks:
                created_at = chunk.created_at or now
                cur = self._conn.execute(
                    """
                    INSERT INTO chunks (document_id, chunk_index, text, token_count,
                                        embedding_model, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        chunk.document_id,
                        chunk.chunk_index,
                        chunk.text,
                        chunk.token_count,
                        embedding_model if chunk.embedding else None,
                        _ts(created_at),
                    ),
                )
                rowid = cur.lastrowid
                if chunk.embedding and table is not None:
                    self._conn.execute(
                        f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                        (rowid, json.dumps(chunk.embedding)),
                    )
                chunk.id = rowid
                chunk.created_at = created_at
                rowids.append(rowid)
        return rowids

    def get_chunks_by_document(self, document_id: str) -> list[Chunk]:
        rows = self._conn.execute(
            """
            SELECT rowid, * FROM chunks WHERE document_id = ? ORDER BY chunk_index
            """,
            (document_id,),
        ).fetchall()
        return self._rows_to_chunks(rows)

    def get_chunks_by_owner(self, owner: Owner) -> list[Chunk]:
        """Return every chunk of every document owned by *owner*."""
        kind, owner_id = _owner_columns(owner)
        rows = self._conn.execute(
            """
            SELECT c.rowid, c.* FROM chunks c
            JOIN documents d ON d.id = c.document_id
            WHERE d.owner_kind = ? AND d.owner_id IS ?
            ORDER BY d.uploaded_at, c.chunk_index
            """,
            (kind, owner_id),
        ).fetchall()
        return self._rows_to_chunks(rows)

    def get_all_chunks(self) -> list[Chunk]:
        rows = self._conn.execute(
            "SELECT rowid, * FROM chunks ORDER BY rowid"
        ).fetchall()
        return self._rows_to_chunks(rows)

    def count_chunks_by_document(self, document_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    def delete_chunks_by_document(self, document_id: str) -> int:
        """Delete chunks + embeddings for a document. Returns the chunk count."""
        self._delete_embeddings_for(
            "SELECT rowid, embedding_model FROM chunks WHERE document_id = ?", (document_id,)
        )
        cur = self._conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
        self._conn.commit()
        return cur.rowcount

    def update_chunk_text(self, chunk_id: int, text: str, token_count: int) -> bool:
        """Replace a chunk's text. The stored embedding is left untouched."""
        cur = self._conn.execute(
            "UPDATE chunks SET text = ?, token_count = ? WHERE rowid = ?",
            (text, token_count, chunk_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def _rows_to_chunks(self, rows: list[sqlite3.Row]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for row in rows:
            chunk = _row_to_chunk(row)
            model = row["embedding_model"]
            if model:
                chunk.embedding = self._load_embedding(model, chunk.id)
            chunks.append(chunk)
        return chunks

    def _load_embedding(self, model: str, rowid: int | None) -> list[float] | None:
        table = vec_table_name(model_to_slug(model))
        if rowid is None or not vec_table_exists(self._conn, table):
            return None
        row = self._conn.execute(
            f"SELECT vec_to_json(embedding) AS embedding FROM {table} WHERE rowid = ?",
            (rowid,),
        ).fetchone()
        return json.loads(row["embedding"]) if row else None

    def _delete_embeddings_for(self, select_sql: str, params: tuple) -> int:
        """Remove vec rows for the chunks selected by *select_sql*."""
        by_table: dict[str, list[int]] = {}
        for row in self._conn.execute(select_sql, params).fetchall():
            if row["embedding_model"]:
                table = vec_table_name(model_to_slug(row["embedding_model"]))
                by_table.setdefault(table, []).append(row["rowid"])

        deleted = 0
        for table, rowids in by_table.items():
            if not vec_table_exists(self._conn, table):
                continue
            for rowid in rowids:
                cur = self._conn.execute(f"DELETE FROM {table} WHERE rowid = ?", (rowid,))
                deleted += cur.rowcount
        return deleted

    # ------------------------------------------------------------------
    # Animals
    # ------------------------------------------------------------------

    def create_animal(self, animal: Animal) -> str:
        now = utcnow()
        self._conn.execute(
            """
            INSERT INTO animals (id, tag_id, owner_id, species, breed, genetic_lineage,
                                 date_of_birth, health_score, status, withdrawal_ends_at,
                                 created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                animal.id,
                animal.tag_id,
                animal.owner_id,
                animal.species,
                animal.breed,
                animal.genetic_lineage,
                _ts(animal.date_of_birth),
                animal.health_score,
                BioSafetyStatus(animal.status).value,
                _ts(animal.withdrawal_ends_at),
                _ts(now),
                _ts(now),
            ),
        )
        self._conn.commit()
        animal.created_at = animal.updated_at = now
        return animal.id

    def get_animal(self, animal_id: str) -> Animal | None:
        row = self._conn.execute(
            "SELECT * FROM animals WHERE id = ?", (animal_id,)
        ).fetchone()
        return _row_to_animal(row) if row else None

    def get_animal_by_tag(self, tag_id: str) -> Animal | None:
        row = self._conn.execute(
            "SELECT * FROM animals WHERE tag_id = ?", (tag_id,)
        ).fetchone()
        return _row_to_animal(row) if row else None

    def list_animals_by_owner(self, owner_id: str) -> list[Animal]:
        rows = self._conn.execute(
            "SELECT * FROM animals WHERE owner_id = ? ORDER BY created_at DESC",
            (owner_id,),
        ).fetchall()
        return [_row_to_animal(r) for r in rows]

    def set_animal_status(
        self,
        animal_id: str,
        status: BioSafetyStatus,
        withdrawal_ends_at: datetime | None,
        *,
        expected_status: BioSafetyStatus | None = None,
        expected_ends_at: datetime | None = None,
    ) -> bool:
        """Write the bio-safety fields, optionally conditioned on the previous state.

        With *expected_status* set, the update only applies if the row still has
        that status and *expected_ends_at* (compared with IS, so None matches
        NULL). Returns True if a row was changed.
        """
        sql = (
            "UPDATE animals SET status = ?, withdrawal_ends_at = ?, updated_at = ? "
            "WHERE id = ?"
        )
        params: list = [
            BioSafetyStatus(status).value,
            _ts(withdrawal_ends_at),
            _ts(utcnow()),
            animal_id,
        ]
        if expected_status is not None:
            sql += " AND status = ? AND withdrawal_ends_at IS ?"
            params += [BioSafetyStatus(expected_status).value, _ts(expected_ends_at)]
        cur = self._conn.execute(sql, params)
        self._conn.commit()
        return cur.rowcount > 0

    def set_animal_health_score(self, animal_id: str, score: int) -> bool:
        """Store a health score, clamped to 0–100."""
        bounded = max(0, min(100, int(score)))
        cur = self._conn.execute(
            "UPDATE animals SET health_score = ?, updated_at = ? WHERE id = ?",
            (bounded, _ts(utcnow()), animal_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def adjust_animal_health_score(self, animal_id: str, delta: int) -> int | None:
        """Add *delta* to the stored health score in one statement, clamped to 0–100.

        Returns the resulting score, or None if the animal does not exist.
        """
        cur = self._conn.execute(
            """
            UPDATE animals
            SET health_score = MAX(0, MIN(100, health_score + ?)), updated_at = ?
            WHERE id = ?
            """,
            (int(delta), _ts(utcnow()), animal_id),
        )
        self._conn.commit()
        if cur.rowcount == 0:
            return None
        row = self._conn.execute(
            "SELECT health_score FROM animals WHERE id = ?", (animal_id,)
        ).fetchone()
        return row["health_score"] if row else None

    def unlock_expired_animals(self, now: datetime) -> int:
        """Move every WITHDRAWAL_LOCK animal whose lock ended at or before *now* to HEALTHY."""
        cur = self._conn.execute(
            """
            UPDATE animals
            SET status = 'HEALTHY', withdrawal_ends_at = NULL, updated_at = ?
            WHERE status = 'WITHDRAWAL_LOCK' AND withdrawal_ends_at <= ?
            """,
            (_ts(utcnow()), _ts(now)),
        )
        self._conn.commit()
        return cur.rowcount

    def delete_animal(self, animal_id: str) -> bool:
        """Delete an animal; products and medical logs cascade."""
        cur = self._conn.execute("DELETE FROM animals WHERE id = ?", (animal_id,))
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Medical logs
    # ------------------------------------------------------------------

    def create_medical_log(self, entry: MedicalLog) -> str:
        self._conn.execute(
            """
            INSERT INTO medical_logs (id, animal_id, medicine_name, dosage, administered_at,
                                      withdrawal_days, notes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.animal_id,
                entry.medicine_name,
                entry.dosage,
                _ts(entry.administered_at),
                entry.withdrawal_days,
                entry.notes,
                _ts(entry.created_at or utcnow()),
            ),
        )
        self._conn.commit()
        return entry.id

    def list_medical_logs(self, animal_id: str) -> list[MedicalLog]:
        """Return an animal's medical logs, most recent administration first."""
        rows = self._conn.execute(
            "SELECT * FROM medical_logs WHERE animal_id = ? ORDER BY administered_at DESC",
            (animal_id,),
        ).fetchall()
        return [_row_to_medical_log(r) for r in rows]

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def create_product(self, data: NewProduct, *, verified_safe: bool) -> Product | None:
        """Insert a product listing.

        *verified_safe* must come from a bio-safety gate clearance; listings
        for unverified animals are rejected here and by a table CHECK. The
        insert only applies while the animal is still HEALTHY; returns None
        if its status changed after the clearance.
        """
        if not verified_safe:
            raise ValueError("Products can only be created for verified-safe animals.")
        product = Product(
            id=str(uuid.uuid4()),
            animal_id=data.animal_id,
            seller_id=data.seller_id,
            product_type=data.product_type,
            total_quantity=float(data.total_quantity),
            price_per_unit=float(data.price_per_unit),
            unit=data.unit,
            min_order_quantity=float(data.min_order_quantity),
            description=data.description,
            is_verified_safe=True,
            created_at=utcnow(),
        )
        cur = self._conn.execute(
            """
            INSERT INTO products (id, animal_id, seller_id, product_type, total_quantity,
                                  quantity_sold, unit, price_per_unit, min_order_quantity,
                                  description, is_verified_safe, created_at)
            SELECT ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?
            WHERE EXISTS (SELECT 1 FROM animals WHERE id = ? AND status = 'HEALTHY')
            """,
            (
                product.id,
                product.animal_id,
                product.seller_id,
                product.product_type,
                product.total_quantity,
                product.quantity_sold,
                product.unit,
                product.price_per_unit,
                product.min_order_quantity,
                product.description,
                1,
                _ts(product.created_at),
                product.animal_id,
            ),
        )
        self._conn.commit()
        return product if cur.rowcount > 0 else None

    def get_product(self, product_id: str) -> Product | None:
        row = self._conn.execute(
            "SELECT * FROM products WHERE id = ?", (product_id,)
        ).fetchone()
        return _row_to_product(row) if row else None

    def list_products_by_seller(self, seller_id: str) -> list[Product]:
        rows = self._conn.execute(
            "SELECT * FROM products WHERE seller_id = ? ORDER BY created_at DESC",
            (seller_id,),
        ).fetchall()
        return [_row_to_product(r) for r in rows]


# ------------------------------------------------------------------
# Column helpers
# ------------------------------------------------------------------


def _ts(value: datetime | None) -> str | None:
    """Serialise a datetime as fixed-width UTC ISO-8601 (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _owner_columns(owner: Owner) -> tuple[str, str | None]:
    if isinstance(owner, SystemReserved):
        return "system", None
    if isinstance(owner, User):
        return "user", owner.id
    raise TypeError(f"Unsupported owner: {owner!r}")


def _owner_from_columns(kind: str, owner_id: str | None) -> Owner:
    return SYSTEM if kind == "system" else User(owner_id or "")


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        owner=_owner_from_columns(row["owner_kind"], row["owner_id"]),
        filename=row["filename"],
        original_name=row["original_name"],
        file_size=row["file_size"],
        total_chunks=row["total_chunks"],
        description=row["description"],
        is_system=bool(row["is_system"]),
        uploaded_at=_parse_ts(row["uploaded_at"]),
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["rowid"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        text=row["text"],
        token_count=row["token_count"],
        created_at=_parse_ts(row["created_at"]),
    )


def _row_to_animal(row: sqlite3.Row) -> Animal:
    return Animal(
        id=row["id"],
        tag_id=row["tag_id"],
        owner_id=row["owner_id"],
        species=row["species"],
        breed=row["breed"],
        genetic_lineage=row["genetic_lineage"],
        date_of_birth=_parse_ts(row["date_of_birth"]),
        health_score=row["health_score"],
        status=BioSafetyStatus(row["status"]),
        withdrawal_ends_at=_parse_ts(row["withdrawal_ends_at"]),
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _row_to_medical_log(row: sqlite3.Row) -> MedicalLog:
    return MedicalLog(
        id=row["id"],
        animal_id=row["animal_id"],
        medicine_name=row["medicine_name"],
        dosage=row["dosage"],
        administered_at=_parse_ts(row["administered_at"]),
        withdrawal_days=row["withdrawal_days"],
        notes=row["notes"],
        created_at=_parse_ts(row["created_at"]),
    )


def _row_to_product(row: sqlite3.Row) -> Product:
    return Product(
        id=row["id"],
        animal_id=row["animal_id"],
        seller_id=row["seller_id"],
        product_type=row["product_type"],
        total_quantity=row["total_quantity"],
        quantity_sold=row["quantity_sold"],
        unit=row["unit"],
        price_per_unit=row["price_per_unit"],
        min_order_quantity=row["min_order_quantity"],
        description=row["description"],
        is_verified_safe=bool(row["is_verified_safe"]),
        created_at=_parse_ts(row["created_at"]),
    )
