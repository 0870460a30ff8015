"""Bio-safety gate: the state machine over Animal.status.

States and transitions:

  HEALTHY ──medication with withdrawal_days > 0──▶ WITHDRAWAL_LOCK
  WITHDRAWAL_LOCK ──now >= withdrawal_ends_at (lazy or sweep)──▶ HEALTHY
  any ──quarantine()──▶ QUARANTINE ──release()──▶ HEALTHY

Every status write is conditioned on the status (and lock end) that was
read, so concurrent evaluations never double-unlock.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from herdsafe.biosafety.health import medication_impact
from herdsafe.db.models import Animal, BioSafetyStatus, MedicalLog, User, utcnow
from herdsafe.db.protocols import HerdStore
from herdsafe.errors import (
    BioSafetyBlocked,
    Forbidden,
    HerdsafeError,
    NotFound,
    ValidationFailed,
)

logger = logging.getLogger(__name__)

_DAY_SECONDS = 86_400
_MAX_ATTEMPTS = 5


@dataclass
class Clearance:
    """Result of a passed gate evaluation.

    ``verified_safe`` is the only source of a Product's verified-safe flag.
    """

    animal: Animal
    verified_safe: bool = True
    unlocked: bool = False


@dataclass
class MedicationOutcome:
    log: MedicalLog
    animal: Animal
    locked: bool
    health_impact: int


def days_remaining(ends_at: datetime, now: datetime) -> int:
    """Whole days left on a lock, rounded up."""
    return math.ceil((ends_at - now).total_seconds() / _DAY_SECONDS)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class BioSafetyGate:
    """Decide whether an animal's products may be listed, and keep its status current.

    Args:
        repo: Animal, medical-log and product storage.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(self, repo: HerdStore, clock: Callable[[], datetime] = utcnow) -> None:
        self.repo = repo
        self._clock = clock

    # ------------------------------------------------------------------
    # Gate evaluation
    # ------------------------------------------------------------------

    def evaluate(self, animal_id: str, acting_user: User) -> Clearance:
        """Check that *acting_user* may list products from *animal_id* right now.

        An expired withdrawal lock is lifted here before clearing.

        Raises:
            NotFound: No such animal.
            Forbidden: The animal belongs to another user.
            BioSafetyBlocked: Active withdrawal lock or quarantine.
        """
        for _ in range(_MAX_ATTEMPTS):
            animal = self._owned_animal(animal_id, acting_user)

            if animal.status is BioSafetyStatus.WITHDRAWAL_LOCK:
                ends_at = animal.withdrawal_ends_at
                now = self._clock()
                if ends_at is not None and now < ends_at:
                    remaining = days_remaining(ends_at, now)
                    logger.info(
                        "Blocked listing for %s: %d day(s) of withdrawal left",
                        animal.tag_id,
                        remaining,
                    )
                    raise BioSafetyBlocked.withdrawal(animal.tag_id, remaining, ends_at)

                unlocked = self.repo.set_animal_status(
                    animal.id,
                    BioSafetyStatus.HEALTHY,
                    None,
                    expected_status=BioSafetyStatus.WITHDRAWAL_LOCK,
                    expected_ends_at=ends_at,
                )
                if not unlocked:
                    logger.debug("Status of %s changed concurrently; re-reading", animal.tag_id)
                    continue
                logger.info("Auto-unlocked animal %s - withdrawal period expired", animal.tag_id)
                animal.status = BioSafetyStatus.HEALTHY
                animal.withdrawal_ends_at = None
                return Clearance(animal=animal, verified_safe=True, unlocked=True)

            if animal.status is BioSafetyStatus.QUARANTINE:
                logger.info("Blocked listing for %s: quarantined", animal.tag_id)
                raise BioSafetyBlocked.quarantined(animal.tag_id)

            return Clearance(animal=animal, verified_safe=True)

        raise HerdsafeError(
            f"Animal '{animal_id}' changed status {_MAX_ATTEMPTS} times during evaluation."
        )

    def sweep_expired(self) -> int:
        """Unlock every animal whose withdrawal period has ended. Returns the count."""
        count = self.repo.unlock_expired_animals(self._clock())
        if count:
            logger.info("Auto-unlocked %d animal(s) with expired withdrawal periods", count)
        return count

    # ------------------------------------------------------------------
    # Medication
    # ------------------------------------------------------------------

    def record_medication(
        self,
        animal_id: str,
        acting_user: User,
        medicine_name: str,
        dosage: str = "",
        withdrawal_days: int = 0,
        administered_at: datetime | None = None,
        notes: str = "",
    ) -> MedicationOutcome:
        """Append a medical log and apply its withdrawal lock and health impact.

        A new medication never shortens an existing lock, and a quarantined
        animal stays quarantined.

        Raises:
            NotFound: No such animal.
            Forbidden: The animal belongs to another user.
            ValidationFailed: Blank medicine name or negative withdrawal days.
        """
        medicine_name = (medicine_name or "").strip()
        if not medicine_name:
            raise ValidationFailed("Medicine name is required.")
        if withdrawal_days < 0:
            raise ValidationFailed("Withdrawal days cannot be negative.")

        animal = self._owned_animal(animal_id, acting_user)
        given_at = _aware(administered_at) if administered_at else self._clock()

        # Locked before the log is written, so a logged withdrawal is never listable.
        locked = False
        if withdrawal_days > 0:
            animal = self._apply_lock(animal, given_at + timedelta(days=withdrawal_days))
            locked = animal.status is BioSafetyStatus.WITHDRAWAL_LOCK

        log = MedicalLog(
            id=str(uuid.uuid4()),
            animal_id=animal.id,
            medicine_name=medicine_name,
            administered_at=given_at,
            withdrawal_days=withdrawal_days,
            dosage=dosage,
            notes=notes,
        )
        self.repo.create_medical_log(log)

        impact = medication_impact(withdrawal_days)
        score = self.repo.adjust_animal_health_score(animal.id, -impact)
        if score is None:
            raise NotFound(f"Animal '{animal.id}' not found.")
        animal.health_score = score

        logger.info(
            "Recorded %s for %s (withdrawal %d day(s), health -%d)",
            medicine_name,
            animal.tag_id,
            withdrawal_days,
            impact,
        )
        return MedicationOutcome(log=log, animal=animal, locked=locked, health_impact=impact)

    def _apply_lock(self, animal: Animal, ends_at: datetime) -> Animal:
        for _ in range(_MAX_ATTEMPTS):
            if animal.status is BioSafetyStatus.QUARANTINE:
                return animal

            target = ends_at
            current = animal.withdrawal_ends_at
            if animal.status is BioSafetyStatus.WITHDRAWAL_LOCK and current and current > target:
                target = current

            if self.repo.set_animal_status(
                animal.id,
                BioSafetyStatus.WITHDRAWAL_LOCK,
                target,
                expected_status=animal.status,
                expected_ends_at=current,
            ):
                animal.status = BioSafetyStatus.WITHDRAWAL_LOCK
                animal.withdrawal_ends_at = target
                return animal

            reread = self.repo.get_animal(animal.id)
            if reread is None:
                raise NotFound(f"Animal '{animal.id}' not found.")
            animal = reread

        raise HerdsafeError(
            f"Animal '{animal.id}' changed status {_MAX_ATTEMPTS} times while locking."
        )

    # ------------------------------------------------------------------
    # Quarantine
    # ------------------------------------------------------------------

    def quarantine(self, animal_id: str, acting_user: User) -> Animal:
        """Move an animal into QUARANTINE, clearing any withdrawal lock."""
        return self._transition(animal_id, acting_user, BioSafetyStatus.QUARANTINE)

    def release(self, animal_id: str, acting_user: User) -> Animal:
        """Release a quarantined animal back to HEALTHY.

        Raises:
            ValidationFailed: The animal is not in quarantine.
        """
        animal = self._owned_animal(animal_id, acting_user)
        if animal.status is not BioSafetyStatus.QUARANTINE:
            raise ValidationFailed(f"Animal {animal.tag_id} is not in quarantine.")
        return self._transition(animal_id, acting_user, BioSafetyStatus.HEALTHY)

    def _transition(self, animal_id: str, acting_user: User, status: BioSafetyStatus) -> Animal:
        for _ in range(_MAX_ATTEMPTS):
            animal = self._owned_animal(animal_id, acting_user)
            if self.repo.set_animal_status(
                animal.id,
                status,
                None,
                expected_status=animal.status,
                expected_ends_at=animal.withdrawal_ends_at,
            ):
                logger.info("Animal %s: %s -> %s", animal.tag_id, animal.status.value, status.value)
                animal.status = status
                animal.withdrawal_ends_at = None
                return animal

        raise HerdsafeError(
            f"Animal '{animal_id}' changed status {_MAX_ATTEMPTS} times during transition."
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _owned_animal(self, animal_id: str, acting_user: User) -> Animal:
        animal = self.repo.get_animal(animal_id)
        if animal is None:
            raise NotFound(f"Animal '{animal_id}' not found.")
        if animal.owner_id != acting_user.id:
            raise Forbidden(f"Animal '{animal.tag_id}' is not owned by '{acting_user.id}'.")
        return animal
