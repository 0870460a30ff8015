"""Health score arithmetic for medication events."""

from __future__ import annotations


def medication_impact(withdrawal_days: int) -> int:
    """Points deducted for one medication; longer withdrawal means a heavier drug."""
    if withdrawal_days <= 0:
        return 2
    if withdrawal_days <= 3:
        return 5
    if withdrawal_days <= 7:
        return 10
    if withdrawal_days <= 14:
        return 15
    return 20
