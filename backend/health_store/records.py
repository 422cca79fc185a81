from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SubscriptionTier = Literal["free", "premium", "family"]
UrgencyLevel = Literal["mild", "moderate", "severe"]

SUBSCRIPTION_TIERS: tuple[str, ...] = ("free", "premium", "family")

# Health-profile columns written by each flow. The two groups are disjoint, which is
# what lets concurrent assessment and onboarding writes merge without locking.
ASSESSMENT_FIELD_GROUP: tuple[str, ...] = ("last_assessment", "recent_symptoms", "ai_recommendations")
ONBOARDING_FIELD_GROUP: tuple[str, ...] = ("allergies", "medications", "conditions", "health_goals")
HEALTH_PROFILE_WRITABLE_FIELDS = frozenset(ASSESSMENT_FIELD_GROUP + ONBOARDING_FIELD_GROUP)


def _label_from_item(item: Any) -> str | None:
    if isinstance(item, dict):
        item = item.get("name") or item.get("label")
    if item is None:
        return None
    text = str(item).strip()
    return text or None


def safe_parse_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return [label for label in (_label_from_item(part) for part in value.split(",")) if label]
        value = parsed
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [label for label in (_label_from_item(item) for item in value) if label]


class AccountProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    address: str | None = None
    emergency_contact: str | None = None
    subscription_tier: SubscriptionTier | None = None
    health_score: float = 0
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("subscription_tier", mode="before")
    @classmethod
    def _blank_tier_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("health_score", mode="before")
    @classmethod
    def _missing_score_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class HealthProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    user_id: str = Field(min_length=1)
    allergies: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    conditions: list[str] = Field(default_factory=list)
    health_goals: str | None = None
    last_assessment: str | None = None
    recent_symptoms: str | None = None
    ai_recommendations: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("allergies", "medications", "conditions", mode="before")
    @classmethod
    def _normalize_labels(cls, value: Any) -> list[str]:
        return safe_parse_list(value)


class AssessmentRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    user_id: str = Field(min_length=1)
    symptoms: str
    pain_level: str
    duration: str
    medications_taken: str
    additional_symptoms: str | None = None
    urgency_level: UrgencyLevel
    confidence_score: int = Field(ge=0, le=100)
    recommendations: str
    timeline: str | None = None
    created_at: str | None = None


class ChatMessageRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    user_id: str = Field(min_length=1)
    type: Literal["user", "ai"]
    content: str
    confidence: int | None = Field(default=None, ge=0, le=100)
    created_at: str | None = None
