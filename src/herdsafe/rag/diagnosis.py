"""Structured diagnosis: result type, tolerant parser and canned responses."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Sequence

_LABELS = ("DISEASE", "CONFIDENCE", "EXPLANATION", "TREATMENT")

DEFAULT_DISEASE = "Unable to diagnose"
DEFAULT_TREATMENT = "Consult veterinarian"


class Confidence(str, enum.Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"

    @classmethod
    def coerce(cls, label: str) -> Confidence:
        """Map a free-text model label onto the closed set; unrecognised → UNKNOWN."""
        match = re.search(r"\b(high|medium|low)\b", label, re.IGNORECASE)
        return cls(match.group(1).capitalize()) if match else cls.UNKNOWN


@dataclass
class Diagnosis:
    disease: str
    confidence: Confidence
    explanation: str
    treatment: str
    raw_response: str = ""

    def as_dict(self) -> dict[str, str]:
        return {
            "disease": self.disease,
            "confidence": self.confidence.value,
            "explanation": self.explanation,
            "treatment": self.treatment,
            "rawResponse": self.raw_response,
        }


def unknown_diagnosis() -> Diagnosis:
    """Fixed result when there is nothing to reason over. No model is called."""
    return Diagnosis(
        disease="Unknown",
        confidence=Confidence.LOW,
        explanation=(
            "Insufficient information in knowledge base to diagnose based on these symptoms."
        ),
        treatment="General care",
    )


def wrap_fallback_output(text: str) -> str:
    """Give the short fallback model's free text the four labelled fields."""
    return (
        f"DISEASE: {text.strip()}\n"
        "CONFIDENCE: Medium\n"
        "EXPLANATION: Based on the symptoms provided.\n"
        f"TREATMENT: {DEFAULT_TREATMENT}"
    )


def synthesize_response(symptoms: Sequence[str]) -> str:
    """Deterministic low-confidence response built only from the symptom list."""
    listed = ", ".join(symptoms)
    return (
        "DISEASE: Possible infection or parasitic condition\n"
        "CONFIDENCE: Low\n"
        f"EXPLANATION: Multiple symptoms detected: {listed}. "
        "Professional veterinary diagnosis recommended.\n"
        "TREATMENT: Veterinary consultation required"
    )


def _field_pattern(label: str) -> re.Pattern[str]:
    others = "|".join(other for other in _LABELS if other != label)
    return re.compile(
        rf"\b{label}\s*:\s*(.*?)(?=\b(?:{others})\s*:|\Z)",
        re.IGNORECASE | re.DOTALL,
    )


_PATTERNS = {label: _field_pattern(label) for label in _LABELS}


def _extract(label: str, raw: str) -> str | None:
    match = _PATTERNS[label].search(raw)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def parse_diagnosis(raw: str) -> Diagnosis:
    """Parse DISEASE / CONFIDENCE / EXPLANATION / TREATMENT from *raw*.

    Labels are matched case-insensitively and each value runs until the next
    label or the end of the text. Missing fields fall back to defaults; the
    explanation falls back to the whole response.
    """
    disease = _extract("DISEASE", raw)
    confidence = _extract("CONFIDENCE", raw)
    explanation = _extract("EXPLANATION", raw)
    treatment = _extract("TREATMENT", raw)

    return Diagnosis(
        disease=disease or DEFAULT_DISEASE,
        confidence=Confidence.coerce(confidence) if confidence else Confidence.LOW,
        explanation=explanation or raw.strip(),
        treatment=treatment or DEFAULT_TREATMENT,
        raw_response=raw,
    )
