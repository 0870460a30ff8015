"""Domain models for the herdsafe database layer."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class User:
    """A real user identity."""

    id: str


@dataclass(frozen=True)
class SystemReserved:
    """The platform itself, owner of shared reference documents."""


SYSTEM = SystemReserved()

Owner = Union[User, SystemReserved]


# ---------------------------------------------------------------------------
# Documents + chunks
# ---------------------------------------------------------------------------


@dataclass
class Document:
    id: str
    owner: Owner
    filename: str
    original_name: str
    file_size: int
    total_chunks: int
    description: str = ""
    is_system: bool = False
    uploaded_at: datetime | None = None


@dataclass
class Chunk:
    document_id: str
    chunk_index: int
    text: str
    embedding: list[float] | None = None
    token_count: int = 0
    created_at: datetime | None = None
    id: int | None = None  # SQLite rowid; None until inserted


# ---------------------------------------------------------------------------
# Herd records
# ---------------------------------------------------------------------------


class BioSafetyStatus(str, enum.Enum):
    HEALTHY = "HEALTHY"
    WITHDRAWAL_LOCK = "WITHDRAWAL_LOCK"
    QUARANTINE = "QUARANTINE"


@dataclass
class Animal:
    """A tracked production unit.

    ``withdrawal_ends_at`` is set iff ``status`` is WITHDRAWAL_LOCK; the
    database enforces this with a CHECK constraint.
    """

    id: str
    tag_id: str
    owner_id: str
    species: str
    breed: str = ""
    genetic_lineage: str = ""
    date_of_birth: datetime | None = None
    health_score: int = 100
    status: BioSafetyStatus = BioSafetyStatus.HEALTHY
    withdrawal_ends_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class MedicalLog:
    id: str
    animal_id: str
    medicine_name: str
    administered_at: datetime
    withdrawal_days: int = 0
    dosage: str = ""
    notes: str = ""
    created_at: datetime | None = None


@dataclass
class Product:
    id: str
    animal_id: str
    seller_id: str
    product_type: str
    total_quantity: float
    price_per_unit: float
    unit: str = "liters"
    min_order_quantity: float = 1.0
    quantity_sold: float = 0.0
    description: str = ""
    is_verified_safe: bool = False
    created_at: datetime | None = None

    @property
    def available_quantity(self) -> float:
        return self.total_quantity - self.quantity_sold


@dataclass
class NewProduct:
    """Listing fields supplied by the seller; the safe flag is not among them."""

    animal_id: str
    seller_id: str
    product_type: str
    total_quantity: float
    price_per_unit: float
    unit: str = "liters"
    min_order_quantity: float = 1.0
    description: str = ""
