from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


URGENCY_LEVELS = ("mild", "moderate", "severe")
PAIN_LEVELS = ("1-2 (Mild)", "3-4 (Mild-Moderate)", "5-6 (Moderate)", "7-8 (Severe)", "9-10 (Extreme)")
DURATIONS = ("Less than 24 hours", "1-3 days", "4-7 days", "1-2 weeks", "More than 2 weeks")
MEDICATION_OPTIONS = (
    "No medication taken",
    "Over-the-counter pain relievers",
    "Prescription medication",
    "Home remedies only",
)

STATUS_OK = "ok"
STATUS_FALLBACK_HARD = "fallback-hard"
STATUS_FALLBACK_SOFT = "fallback-soft"

HARD_FALLBACK_CONFIDENCE = 50
SOFT_FALLBACK_CONFIDENCE = 70
SENTINEL_CONFIDENCES = frozenset({HARD_FALLBACK_CONFIDENCE, SOFT_FALLBACK_CONFIDENCE})

CHAT_CONFIDENCE = 85
CHAT_FALLBACK_CONFIDENCE = 50
CHAT_FALLBACK_TEXT = (
    "I apologize, but I'm unable to process your request at the moment. "
    "Please try again or consult with a healthcare provider for immediate concerns."
)
CHAT_FALLBACK_PREFIX = "I apologize, but I'm unable"


@dataclass(frozen=True)
class AssessmentRequest:
    symptoms: str
    pain_level: str
    duration: str
    medications_taken: str
    additional_symptoms: str | None = None


@dataclass(frozen=True)
class AssessmentResult:
    urgency_level: str
    confidence_score: int
    recommendations: str
    timeline: str

    def as_payload(self) -> dict[str, Any]:
        return {
            "urgencyLevel": self.urgency_level,
            "confidenceScore": self.confidence_score,
            "recommendations": self.recommendations,
            "timeline": self.timeline,
        }


HARD_FALLBACK = AssessmentResult(
    urgency_level="moderate",
    confidence_score=HARD_FALLBACK_CONFIDENCE,
    recommendations="Unable to process assessment. Please consult a healthcare provider.",
    timeline="1-2 days",
)
SOFT_FALLBACK = AssessmentResult(
    urgency_level="moderate",
    confidence_score=SOFT_FALLBACK_CONFIDENCE,
    recommendations="Please consult with a healthcare provider for proper evaluation.",
    timeline="1-2 days",
)


def is_sentinel_confidence(value: int) -> bool:
    return value in SENTINEL_CONFIDENCES


@dataclass
class SynthesisOutcome:
    result: AssessmentResult
    status: str = STATUS_OK
    notes: list[str] = field(default_factory=list)

    @property
    def is_failure(self) -> bool:
        return self.status != STATUS_OK or is_sentinel_confidence(self.result.confidence_score)

    def as_envelope(self) -> dict[str, Any]:
        return {"status": self.status, "result": asdict(self.result), "notes": self.notes}


@dataclass(frozen=True)
class ChatReply:
    text: str
    confidence: int
    fallback: bool = False

    def as_payload(self) -> dict[str, Any]:
        return {"response": self.text, "confidence": self.confidence}


def is_chat_fallback(text: str | None) -> bool:
    return bool(text) and text.startswith(CHAT_FALLBACK_PREFIX)
