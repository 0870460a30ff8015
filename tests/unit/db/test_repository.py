"""Tests for the Repository (documents, chunks, animals, medical logs, products)."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from herdsafe.db.models import (
    SYSTEM,
    Animal,
    BioSafetyStatus,
    Chunk,
    Document,
    MedicalLog,
    NewProduct,
    User,
)

MODEL = "huggingface/sentence-transformers/all-MiniLM-L6-v2"
T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _doc(id="doc-1", owner=User("u1"), filename="notes.pdf", is_system=False, uploaded_at=None):
    return Document(
        id=id,
        owner=owner,
        filename=filename,
        original_name=filename,
        file_size=1024,
        total_chunks=2,
        is_system=is_system,
        uploaded_at=uploaded_at,
    )


def _chunk(document_id="doc-1", index=0, text="mastitis signs", embedding=(1.0, 0.0, 0.5)):
    return Chunk(
        document_id=document_id,
        chunk_index=index,
        text=text,
        embedding=list(embedding) if embedding is not None else None,
        token_count=4,
    )


def _animal(id="a1", tag="COW-1", owner="u1", status=BioSafetyStatus.HEALTHY, ends_at=None):
    return Animal(
        id=id, tag_id=tag, owner_id=owner, species="cattle", status=status,
        withdrawal_ends_at=ends_at,
    )


# ------------------------------------------------------------------
# Documents
# ------------------------------------------------------------------

def test_create_and_get_document(repo):
    repo.create_document(_doc())
    doc = repo.get_document("doc-1")
    assert doc is not None
    assert doc.owner == User("u1")
    assert doc.uploaded_at is not None and doc.uploaded_at.tzinfo is not None


def test_get_document_not_found(repo):
    assert repo.get_document("missing") is None


def test_system_owner_round_trips(repo):
    repo.create_document(_doc(owner=SYSTEM, is_system=True, filename="livestock.pdf"))
    assert repo.get_document("doc-1").owner is SYSTEM


def test_documents_by_owner_newest_first(repo):
    repo.create_document(_doc(id="old", uploaded_at=T0))
    repo.create_document(_doc(id="new", uploaded_at=T0 + timedelta(hours=1)))
    repo.create_document(_doc(id="other", owner=User("u2")))
    ids = [d.id for d in repo.get_documents_by_owner(User("u1"))]
    assert ids == ["new", "old"]


def test_user_named_system_is_not_the_system_owner(repo):
    repo.create_document(_doc(id="kb", owner=SYSTEM, is_system=True, filename="kb.pdf"))
    repo.create_document(_doc(id="mine", owner=User("system")))
    assert [d.id for d in repo.get_documents_by_owner(SYSTEM)] == ["kb"]
    assert [d.id for d in repo.get_documents_by_owner(User("system"))] == ["mine"]


def test_duplicate_system_filename_rejected(repo):
    repo.create_document(_doc(id="kb1", owner=SYSTEM, is_system=True, filename="kb.pdf"))
    with pytest.raises(sqlite3.IntegrityError):
        repo.create_document(_doc(id="kb2", owner=SYSTEM, is_system=True, filename="kb.pdf"))


def test_delete_document_cascades_chunks(repo):
    repo.create_document(_doc())
    repo.create_chunks_batch([_chunk(index=0), _chunk(index=1)], MODEL)
    assert repo.delete_document("doc-1") is True
    assert repo.get_chunks_by_document("doc-1") == []
    assert repo.get_all_chunks() == []


# ------------------------------------------------------------------
# Chunks
# ------------------------------------------------------------------

def test_create_chunks_batch_sets_ids_and_stores_embeddings(repo):
    repo.create_document(_doc())
    chunks = [_chunk(index=0), _chunk(index=1, text="bloat", embedding=(0.0, 1.0, 0.25))]
    ids = repo.create_chunks_batch(chunks, MODEL)
    assert ids == [c.id for c in chunks]

    stored = repo.get_chunks_by_document("doc-1")
    assert [c.chunk_index for c in stored] == [0, 1]
    assert stored[0].embedding == [1.0, 0.0, 0.5]
    assert stored[1].embedding == [0.0, 1.0, 0.25]
    assert stored[1].token_count == 4


def test_create_chunks_batch_empty(repo):
    assert repo.create_chunks_batch([], MODEL) == []


def test_chunk_without_embedding_loads_as_none(repo):
    repo.create_document(_doc())
    repo.create_chunks_batch([_chunk(embedding=None)], MODEL)
    assert repo.get_all_chunks()[0].embedding is None


def test_dimension_mismatch_rejected(repo):
    repo.create_document(_doc())
    repo.create_chunks_batch([_chunk()], MODEL)
    with pytest.raises(ValueError, match="dimension"):
        repo.create_chunks_batch([_chunk(index=1, embedding=(1.0, 0.0))], MODEL)


def test_get_chunks_by_owner_filters_by_document_owner(repo):
    repo.create_document(_doc(id="d1", owner=User("u1")))
    repo.create_document(_doc(id="d2", owner=User("u2")))
    repo.create_chunks_batch([_chunk(document_id="d1"), _chunk(document_id="d2")], MODEL)
    chunks = repo.get_chunks_by_owner(User("u1"))
    assert [c.document_id for c in chunks] == ["d1"]


def test_delete_chunks_by_document_returns_count(repo):
    repo.create_document(_doc())
    repo.create_chunks_batch([_chunk(index=i) for i in range(3)], MODEL)
    assert repo.delete_chunks_by_document("doc-1") == 3
    assert repo.count_chunks_by_document("doc-1") == 0


def test_update_chunk_text_keeps_embedding(repo):
    repo.create_document(_doc())
    (chunk_id,) = repo.create_chunks_batch([_chunk()], MODEL)
    assert repo.update_chunk_text(chunk_id, "revised text", 3) is True
    stored = repo.get_all_chunks()[0]
    assert stored.text == "revised text"
    assert stored.token_count == 3
    assert stored.embedding == [1.0, 0.0, 0.5]


# ------------------------------------------------------------------
# Animals
# ------------------------------------------------------------------

def test_create_and_get_animal(repo):
    repo.create_animal(_animal())
    animal = repo.get_animal("a1")
    assert animal.tag_id == "COW-1"
    assert animal.status is BioSafetyStatus.HEALTHY
    assert animal.health_score == 100
    assert repo.get_animal_by_tag("COW-1").id == "a1"


def test_duplicate_tag_rejected(repo):
    repo.create_animal(_animal())
    with pytest.raises(sqlite3.IntegrityError):
        repo.create_animal(_animal(id="a2"))


def test_set_animal_status_round_trips_end_time(repo):
    repo.create_animal(_animal())
    ends = T0 + timedelta(days=10)
    assert repo.set_animal_status("a1", BioSafetyStatus.WITHDRAWAL_LOCK, ends) is True
    animal = repo.get_animal("a1")
    assert animal.status is BioSafetyStatus.WITHDRAWAL_LOCK
    assert animal.withdrawal_ends_at == ends


def test_conditional_status_update_applies_once(repo):
    ends = T0 + timedelta(days=1)
    repo.create_animal(_animal(status=BioSafetyStatus.WITHDRAWAL_LOCK, ends_at=ends))
    kwargs = dict(expected_status=BioSafetyStatus.WITHDRAWAL_LOCK, expected_ends_at=ends)
    assert repo.set_animal_status("a1", BioSafetyStatus.HEALTHY, None, **kwargs) is True
    assert repo.set_animal_status("a1", BioSafetyStatus.HEALTHY, None, **kwargs) is False


def test_conditional_status_update_rejects_stale_end_time(repo):
    ends = T0 + timedelta(days=1)
    repo.create_animal(_animal(status=BioSafetyStatus.WITHDRAWAL_LOCK, ends_at=ends))
    changed = repo.set_animal_status(
        "a1",
        BioSafetyStatus.HEALTHY,
        None,
        expected_status=BioSafetyStatus.WITHDRAWAL_LOCK,
        expected_ends_at=ends - timedelta(hours=1),
    )
    assert changed is False
    assert repo.get_animal("a1").status is BioSafetyStatus.WITHDRAWAL_LOCK


@pytest.mark.parametrize("score,expected", [(-5, 0), (55, 55), (250, 100)])
def test_set_animal_health_score_clamped(repo, score, expected):
    repo.create_animal(_animal())
    repo.set_animal_health_score("a1", score)
    assert repo.get_animal("a1").health_score == expected


def test_adjust_animal_health_score_applies_to_stored_value(repo):
    repo.create_animal(_animal())
    repo.set_animal_health_score("a1", 40)

    assert repo.adjust_animal_health_score("a1", -15) == 25
    assert repo.adjust_animal_health_score("a1", -30) == 0
    assert repo.adjust_animal_health_score("a1", 150) == 100
    assert repo.get_animal("a1").health_score == 100


def test_adjust_health_score_of_missing_animal(repo):
    assert repo.adjust_animal_health_score("missing", -2) is None


def test_unlock_expired_animals(repo):
    repo.create_animal(_animal(id="a1", tag="T1", status=BioSafetyStatus.WITHDRAWAL_LOCK, ends_at=T0))
    repo.create_animal(
        _animal(id="a2", tag="T2", status=BioSafetyStatus.WITHDRAWAL_LOCK, ends_at=T0 + timedelta(days=2))
    )
    repo.create_animal(_animal(id="a3", tag="T3", status=BioSafetyStatus.QUARANTINE))

    assert repo.unlock_expired_animals(T0) == 1
    assert repo.get_animal("a1").status is BioSafetyStatus.HEALTHY
    assert repo.get_animal("a1").withdrawal_ends_at is None
    assert repo.get_animal("a2").status is BioSafetyStatus.WITHDRAWAL_LOCK
    assert repo.get_animal("a3").status is BioSafetyStatus.QUARANTINE


def test_delete_animal_cascades(repo):
    repo.create_animal(_animal())
    repo.create_medical_log(
        MedicalLog(id="m1", animal_id="a1", medicine_name="Ivermectin", administered_at=T0)
    )
    repo.create_product(
        NewProduct(animal_id="a1", seller_id="u1", product_type="milk",
                   total_quantity=10, price_per_unit=1.5),
        verified_safe=True,
    )
    assert repo.delete_animal("a1") is True
    assert repo.list_medical_logs("a1") == []
    assert repo.list_products_by_seller("u1") == []


# ------------------------------------------------------------------
# Medical logs + products
# ------------------------------------------------------------------

def test_medical_logs_newest_first(repo):
    repo.create_animal(_animal())
    for i, day in enumerate([1, 5, 3]):
        repo.create_medical_log(
            MedicalLog(
                id=f"m{i}", animal_id="a1", medicine_name=f"drug-{day}",
                administered_at=T0 + timedelta(days=day), withdrawal_days=day,
            )
        )
    names = [log.medicine_name for log in repo.list_medical_logs("a1")]
    assert names == ["drug-5", "drug-3", "drug-1"]


def test_create_product_requires_verified_flag(repo):
    repo.create_animal(_animal())
    data = NewProduct(animal_id="a1", seller_id="u1", product_type="milk",
                      total_quantity=10, price_per_unit=1.5)
    with pytest.raises(ValueError, match="verified-safe"):
        repo.create_product(data, verified_safe=False)


def test_create_product_persists(repo):
    repo.create_animal(_animal())
    product = repo.create_product(
        NewProduct(animal_id="a1", seller_id="u1", product_type="milk",
                   total_quantity=20, price_per_unit=0.9),
        verified_safe=True,
    )
    stored = repo.get_product(product.id)
    assert stored.is_verified_safe is True
    assert stored.available_quantity == 20
    assert stored.unit == "liters"


@pytest.mark.parametrize("status,ends_at", [
    (BioSafetyStatus.WITHDRAWAL_LOCK, T0 + timedelta(days=3)),
    (BioSafetyStatus.QUARANTINE, None),
])
def test_create_product_skips_animal_that_is_no_longer_healthy(repo, status, ends_at):
    repo.create_animal(_animal(status=status, ends_at=ends_at))
    product = repo.create_product(
        NewProduct(animal_id="a1", seller_id="u1", product_type="milk",
                   total_quantity=20, price_per_unit=0.9),
        verified_safe=True,
    )
    assert product is None
    assert repo.list_products_by_seller("u1") == []
