from .evaluator import (
    COMPLETE,
    NEEDS_PERSONAL_INFO,
    NEEDS_SUBSCRIPTION,
    NEXT_ROUTES,
    CompletenessStateError,
    CompletenessStateMachine,
    OnboardingEvaluation,
    evaluate_completeness,
    missing_personal_fields,
)
from .identity import AuthProvider, AuthUser, HeaderAuthProvider, IdentityError, SupabaseAuthProvider
from .service import OnboardingService

__all__ = [
    "COMPLETE",
    "NEEDS_PERSONAL_INFO",
    "NEEDS_SUBSCRIPTION",
    "NEXT_ROUTES",
    "AuthProvider",
    "AuthUser",
    "CompletenessStateError",
    "CompletenessStateMachine",
    "HeaderAuthProvider",
    "IdentityError",
    "OnboardingEvaluation",
    "OnboardingService",
    "SupabaseAuthProvider",
    "evaluate_completeness",
    "missing_personal_fields",
]
