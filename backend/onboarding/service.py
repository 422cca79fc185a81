from __future__ import annotations

import logging
from typing import Any, Mapping

from health_store import PersistenceError, PersistenceReconciler, RecordNotFound, SUBSCRIPTION_TIERS
from health_store.records import AccountProfile, HealthProfile
from triage_core.errors import ValidationError

from .evaluator import (
    STATE_CREATING,
    STATE_EVALUATING,
    CompletenessStateMachine,
    OnboardingEvaluation,
    evaluate_completeness,
    missing_personal_fields,
)
from .identity import AuthUser

logger = logging.getLogger(__name__)

PERSONAL_INFO_FIELDS = (
    ("phone", "phone"),
    ("dateOfBirth", "date_of_birth"),
    ("gender", "gender"),
    ("address", "address"),
    ("emergencyContact", "emergency_contact"),
    ("healthGoals", "health_goals"),
)


def _text(payload: Mapping[str, Any], wire_name: str, attr: str) -> str:
    raw = payload.get(wire_name, payload.get(attr))
    return raw.strip() if isinstance(raw, str) else ""


class OnboardingService:
    def __init__(self, reconciler: PersistenceReconciler) -> None:
        self.reconciler = reconciler

    def _read_health_profile(self, user_id: str, warnings: list[str]) -> HealthProfile | None:
        try:
            return self.reconciler.get_health_profile(user_id)
        except PersistenceError as exc:
            # Health data is optional; a failed read counts as "not provided yet".
            logger.warning("health profile read failed user_id=%s code=%s", user_id, exc.code)
            warnings.append(f"health_profile_unavailable:{exc.code}")
            return None

    def evaluate(self, user: AuthUser) -> OnboardingEvaluation:
        machine = CompletenessStateMachine()
        machine.advance(STATE_EVALUATING)
        created = False
        try:
            account = self.reconciler.get_account_profile(user.id)
        except RecordNotFound:
            machine.advance(STATE_CREATING)
            account = self.reconciler.create_account_profile(user.id, user.seed_fields())
            created = True
            machine.advance(STATE_EVALUATING)
        except PersistenceError as exc:
            logger.error("account profile read failed user_id=%s code=%s", user.id, exc.code)
            raise

        warnings: list[str] = []
        health = self._read_health_profile(user.id, warnings)
        return self._conclude(machine, account, health, created=created, warnings=warnings)

    @staticmethod
    def _conclude(
        machine: CompletenessStateMachine,
        account: AccountProfile,
        health: HealthProfile | None,
        *,
        created: bool,
        warnings: list[str],
    ) -> OnboardingEvaluation:
        verdict = evaluate_completeness(account, health)
        states = machine.advance(verdict)
        return OnboardingEvaluation(
            verdict=verdict,
            account=account,
            health=health,
            missing_fields=missing_personal_fields(account, health),
            states=states,
            created_account=created,
            warnings=warnings,
        )

    def submit_personal_info(self, user: AuthUser, payload: Mapping[str, Any]) -> OnboardingEvaluation:
        values = {attr: _text(payload, wire_name, attr) for wire_name, attr in PERSONAL_INFO_FIELDS}
        missing = [wire_name for wire_name, attr in PERSONAL_INFO_FIELDS if not values[attr]]
        if missing:
            raise ValidationError("Please fill in all required fields", fields=missing)

        self.reconciler.get_or_create_account_profile(user.id, user.seed_fields())
        self.reconciler.update_account_profile(
            user.id,
            {key: values[key] for key in ("phone", "date_of_birth", "gender", "address", "emergency_contact")},
        )
        self.reconciler.upsert_health_profile(
            user.id,
            {
                "allergies": payload.get("allergies") or [],
                "medications": payload.get("currentMedications", payload.get("medications")) or [],
                "conditions": payload.get("medicalConditions", payload.get("conditions")) or [],
                "health_goals": values["health_goals"],
            },
        )
        return self.evaluate(user)

    def choose_subscription(self, user: AuthUser, tier: str | None) -> OnboardingEvaluation:
        normalized = (tier or "").strip().lower()
        if normalized not in SUBSCRIPTION_TIERS:
            raise ValidationError(
                f"Subscription tier must be one of: {', '.join(SUBSCRIPTION_TIERS)}",
                fields=["tier"],
            )
        self.reconciler.get_or_create_account_profile(user.id, user.seed_fields())
        self.reconciler.update_account_profile(user.id, {"subscription_tier": normalized})
        return self.evaluate(user)
