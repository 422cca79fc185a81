from __future__ import annotations

import logging
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError

from .errors import ValidationError
from .gateway import TextGenerationGateway
from .json_extract import extract_first_json_object
from .models import (
    DURATIONS,
    HARD_FALLBACK,
    MEDICATION_OPTIONS,
    PAIN_LEVELS,
    SOFT_FALLBACK,
    STATUS_FALLBACK_HARD,
    STATUS_FALLBACK_SOFT,
    STATUS_OK,
    AssessmentRequest,
    AssessmentResult,
    SynthesisOutcome,
)
from .prompts import build_assessment_prompt

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = (
    ("symptoms", "symptoms"),
    ("painLevel", "pain_level"),
    ("duration", "duration"),
    ("medicationsTaken", "medications_taken"),
)
_LABEL_SETS = {
    "pain_level": PAIN_LEVELS,
    "duration": DURATIONS,
    "medications_taken": MEDICATION_OPTIONS,
}


class _AssessmentPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    urgencyLevel: Literal["mild", "moderate", "severe"]
    confidenceScore: int = Field(ge=0, le=100)
    recommendations: str = Field(min_length=1)
    timeline: str = Field(min_length=1)

    @field_validator("urgencyLevel", mode="before")
    @classmethod
    def _normalize_urgency(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


def _is_known_label(value: str, labels: tuple[str, ...]) -> bool:
    lowered = value.strip().lower()
    return any(label.lower() == lowered for label in labels)


def validate_assessment_input(payload: Mapping[str, Any]) -> AssessmentRequest:
    values: dict[str, str] = {}
    missing: list[str] = []
    for wire_name, attr in _REQUIRED_FIELDS:
        raw = payload.get(wire_name)
        if raw is None:
            raw = payload.get(attr)
        if not isinstance(raw, str) or not raw.strip():
            missing.append(wire_name)
            continue
        values[attr] = raw
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    # Values reach the prompt and the stored row exactly as submitted.
    for attr, labels in _LABEL_SETS.items():
        if not _is_known_label(values[attr], labels):
            logger.warning("unrecognised questionnaire label field=%s", attr)

    extra = payload.get("additionalSymptoms", payload.get("additional_symptoms"))
    additional = extra if isinstance(extra, str) and extra.strip() else None
    return AssessmentRequest(additional_symptoms=additional, **values)


def parse_assessment_text(raw_text: str) -> AssessmentResult | None:
    candidate = extract_first_json_object(raw_text)
    if candidate is None:
        return None
    try:
        parsed = _AssessmentPayload.model_validate(candidate)
    except SchemaError:
        return None
    return AssessmentResult(
        urgency_level=parsed.urgencyLevel,
        confidence_score=parsed.confidenceScore,
        recommendations=parsed.recommendations,
        timeline=parsed.timeline,
    )


class AssessmentSynthesizer:
    def __init__(self, gateway: TextGenerationGateway) -> None:
        self.gateway = gateway

    def synthesize(self, request: AssessmentRequest) -> SynthesisOutcome:
        prompt = build_assessment_prompt(request)
        try:
            raw_text = self.gateway.generate(prompt)
        except Exception as exc:
            logger.warning("assessment generation failed, using hard fallback: %s", exc)
            return SynthesisOutcome(result=HARD_FALLBACK, status=STATUS_FALLBACK_HARD, notes=[str(exc)])

        result = parse_assessment_text(raw_text)
        if result is None:
            logger.warning("assessment output had no valid JSON object, using soft fallback")
            return SynthesisOutcome(
                result=SOFT_FALLBACK,
                status=STATUS_FALLBACK_SOFT,
                notes=["unparseable_model_output"],
            )
        return SynthesisOutcome(result=result, status=STATUS_OK)

    def assess(self, payload: Mapping[str, Any]) -> SynthesisOutcome:
        return self.synthesize(validate_assessment_input(payload))
