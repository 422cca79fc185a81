from __future__ import annotations

from dataclasses import dataclass, field

from health_store.records import AccountProfile, HealthProfile

STATE_UNKNOWN = "UNKNOWN"
STATE_CREATING = "CREATING"
STATE_EVALUATING = "EVALUATING"
NEEDS_PERSONAL_INFO = "NEEDS_PERSONAL_INFO"
NEEDS_SUBSCRIPTION = "NEEDS_SUBSCRIPTION"
COMPLETE = "COMPLETE"

VERDICTS = (NEEDS_PERSONAL_INFO, NEEDS_SUBSCRIPTION, COMPLETE)

NEXT_ROUTES = {
    NEEDS_PERSONAL_INFO: "/complete-profile",
    NEEDS_SUBSCRIPTION: "/choose-subscription",
    COMPLETE: "/dashboard",
}

REQUIRED_ACCOUNT_FIELDS = ("phone", "date_of_birth", "gender", "address", "emergency_contact")
REQUIRED_HEALTH_FIELDS = ("health_goals",)


class CompletenessStateError(Exception):
    pass


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def missing_personal_fields(account: AccountProfile, health: HealthProfile | None) -> list[str]:
    missing = [name for name in REQUIRED_ACCOUNT_FIELDS if _is_blank(getattr(account, name))]
    for name in REQUIRED_HEALTH_FIELDS:
        if health is None or _is_blank(getattr(health, name)):
            missing.append(name)
    return missing


def evaluate_completeness(account: AccountProfile, health: HealthProfile | None) -> str:
    if missing_personal_fields(account, health):
        return NEEDS_PERSONAL_INFO
    if account.subscription_tier is None:
        return NEEDS_SUBSCRIPTION
    return COMPLETE


@dataclass
class CompletenessStateMachine:
    _TRANSITIONS = {
        STATE_UNKNOWN: {STATE_EVALUATING},
        STATE_EVALUATING: {STATE_CREATING, NEEDS_PERSONAL_INFO, NEEDS_SUBSCRIPTION, COMPLETE},
        STATE_CREATING: {STATE_EVALUATING},
        NEEDS_PERSONAL_INFO: set(),
        NEEDS_SUBSCRIPTION: set(),
        COMPLETE: set(),
    }

    state: str = STATE_UNKNOWN
    trail: list[str] = field(default_factory=lambda: [STATE_UNKNOWN])

    @property
    def terminal(self) -> bool:
        return self.state in VERDICTS

    def advance(self, next_state: str) -> list[str]:
        allowed = self._TRANSITIONS.get(self.state, set())
        if next_state not in allowed:
            raise CompletenessStateError(f"Invalid completeness transition {self.state} -> {next_state}")
        self.state = next_state
        self.trail.append(next_state)
        return list(self.trail)


@dataclass
class OnboardingEvaluation:
    verdict: str
    account: AccountProfile
    health: HealthProfile | None
    missing_fields: list[str] = field(default_factory=list)
    states: list[str] = field(default_factory=list)
    created_account: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def next_route(self) -> str:
        return NEXT_ROUTES[self.verdict]

    def as_payload(self) -> dict[str, object]:
        return {
            "verdict": self.verdict,
            "nextRoute": self.next_route,
            "missingFields": self.missing_fields,
            "states": self.states,
            "createdAccount": self.created_account,
        }
