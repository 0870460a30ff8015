"""Storage capabilities the core depends on, one Protocol per entity.

herdsafe.db.repository.Repository implements all of them on SQLite; the
RAG pipeline and the bio-safety gate only see these interfaces.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from herdsafe.db.models import (
    Animal,
    BioSafetyStatus,
    Chunk,
    Document,
    MedicalLog,
    NewProduct,
    Owner,
    Product,
)


class DocumentStore(Protocol):
    def create_document(self, document: Document) -> str: ...

    def get_document(self, document_id: str) -> Document | None: ...

    def get_documents_by_owner(self, owner: Owner) -> list[Document]: ...

    def delete_document(self, document_id: str) -> bool: ...


class ChunkStore(Protocol):
    def create_chunks_batch(self, chunks: list[Chunk], embedding_model: str) -> list[int]: ...

    def get_chunks_by_document(self, document_id: str) -> list[Chunk]: ...

    def get_chunks_by_owner(self, owner: Owner) -> list[Chunk]: ...

    def get_all_chunks(self) -> list[Chunk]: ...

    def delete_chunks_by_document(self, document_id: str) -> int: ...

    def update_chunk_text(self, chunk_id: int, text: str, token_count: int) -> bool: ...


class AnimalStore(Protocol):
    def create_animal(self, animal: Animal) -> str: ...

    def get_animal(self, animal_id: str) -> Animal | None: ...

    def set_animal_status(
        self,
        animal_id: str,
        status: BioSafetyStatus,
        withdrawal_ends_at: datetime | None,
        *,
        expected_status: BioSafetyStatus | None = None,
        expected_ends_at: datetime | None = None,
    ) -> bool: ...

    def set_animal_health_score(self, animal_id: str, score: int) -> bool: ...

    def adjust_animal_health_score(self, animal_id: str, delta: int) -> int | None: ...

    def unlock_expired_animals(self, now: datetime) -> int: ...


class MedicalLogStore(Protocol):
    def create_medical_log(self, entry: MedicalLog) -> str: ...

    def list_medical_logs(self, animal_id: str) -> list[MedicalLog]: ...


class ProductStore(Protocol):
    def create_product(self, data: NewProduct, *, verified_safe: bool) -> Product | None: ...


class HerdStore(AnimalStore, MedicalLogStore, ProductStore, Protocol):
    """Everything the bio-safety gate and listing service touch."""


class KnowledgeStore(DocumentStore, ChunkStore, Protocol):
    """Everything the ingestion pipeline and bootstrapper touch."""
