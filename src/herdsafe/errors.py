"""Error taxonomy shared by the RAG pipeline and the bio-safety gate.

Every error carries a human-readable message. The CLI turns these into
actionable console output (see herdsafe.cli.errors).
"""

from __future__ import annotations

from datetime import datetime


class HerdsafeError(Exception):
    """Base class for all domain errors raised by herdsafe."""


class ServiceUnavailable(HerdsafeError):
    """External credential or configuration is missing. Never retried."""


class EmbeddingFailed(HerdsafeError):
    """A single embedding call failed (transport, model, or timeout)."""


class GenerationFailed(HerdsafeError):
    """Text generation failed on every model that was tried."""


class NotFound(HerdsafeError):
    """A referenced Animal or Document does not exist."""


class Forbidden(HerdsafeError):
    """The acting user does not own the referenced record."""


class ValidationFailed(HerdsafeError):
    """Caller input is malformed (blank question, negative quantity, ...)."""


class BioSafetyBlocked(HerdsafeError):
    """An animal may not be used for production right now.

    Attributes:
        tag_id: Tag identity of the blocked animal.
        days_remaining: Whole days left on a withdrawal lock (None for quarantine).
        withdrawal_ends_at: End of the withdrawal lock (None for quarantine).
        reason: Short machine-friendly reason: 'withdrawal' or 'quarantine'.
        details: Remediation text shown to the user.
    """

    def __init__(
        self,
        message: str,
        *,
        tag_id: str,
        reason: str,
        details: str,
        days_remaining: int | None = None,
        withdrawal_ends_at: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.tag_id = tag_id
        self.reason = reason
        self.details = details
        self.days_remaining = days_remaining
        self.withdrawal_ends_at = withdrawal_ends_at

    @classmethod
    def withdrawal(
        cls, tag_id: str, days_remaining: int, ends_at: datetime
    ) -> BioSafetyBlocked:
        return cls(
            f"CRITICAL: {tag_id} is under medical withdrawal period.",
            tag_id=tag_id,
            reason="withdrawal",
            details=(
                f"This animal cannot be used for production for "
                f"{days_remaining} more day(s)."
            ),
            days_remaining=days_remaining,
            withdrawal_ends_at=ends_at,
        )

    @classmethod
    def quarantined(cls, tag_id: str) -> BioSafetyBlocked:
        return cls(
            f"Animal {tag_id} is currently in QUARANTINE and cannot be used for production.",
            tag_id=tag_id,
            reason="quarantine",
            details="Release the animal from quarantine before listing its products.",
        )

    def __str__(self) -> str:
        return f"{self.args[0]} {self.details}"
