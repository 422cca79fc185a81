from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from health_store import (
    SUBSCRIPTION_TIERS,
    AssessmentRecord,
    ChatMessageRecord,
    PersistenceError,
    PersistenceReconciler,
    PostgrestRowStore,
    RecordNotFound,
    RowStore,
    SQLiteHealthDB,
    SQLiteRowStore,
)
from health_store.time_utils import to_iso, utc_now
from onboarding import (
    AuthProvider,
    AuthUser,
    HeaderAuthProvider,
    IdentityError,
    OnboardingService,
    SupabaseAuthProvider,
)
from settings import Settings, bootstrap_local_env, configure_logging
from triage_core import (
    AssessmentRequest,
    AssessmentSynthesizer,
    ChatReply,
    ChatResponder,
    STATUS_OK,
    HttpTextGenerationGateway,
    SentinelResultError,
    SynthesisOutcome,
    TextGenerationGateway,
    ValidationError,
    select_provider,
    validate_assessment_input,
)

bootstrap_local_env()
settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger("healthassist")

_ACCOUNT_PROFILE_KEYS = (
    "email",
    "first_name",
    "last_name",
    "phone",
    "date_of_birth",
    "gender",
    "address",
    "emergency_contact",
)
_HEALTH_PROFILE_KEYS = {
    "allergies": "allergies",
    "current_medications": "medications",
    "medical_conditions": "conditions",
    "health_goals": "health_goals",
}


class AssessmentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symptoms: str | None = None
    pain_level: str | None = Field(default=None, alias="painLevel")
    duration: str | None = None
    medications_taken: str | None = Field(default=None, alias="medicationsTaken")
    additional_symptoms: str | None = Field(default=None, alias="additionalSymptoms")
    user_id: str | None = Field(default=None, alias="userId")


class ChatPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str | None = None
    user_id: str | None = Field(default=None, alias="userId")


class ProfilePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    profile_data: dict[str, Any] = Field(default_factory=dict, alias="profileData")


class PersonalInfoPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    phone: str | None = None
    date_of_birth: str | None = Field(default=None, alias="dateOfBirth")
    gender: str | None = None
    address: str | None = None
    emergency_contact: str | None = Field(default=None, alias="emergencyContact")
    allergies: str | list[str] | None = None
    current_medications: str | list[str] | None = Field(default=None, alias="currentMedications")
    medical_conditions: str | list[str] | None = Field(default=None, alias="medicalConditions")
    health_goals: str | None = Field(default=None, alias="healthGoals")


class SubscriptionPayload(BaseModel):
    tier: str | None = None


def _build_store(config: Settings) -> RowStore:
    if config.store_backend == "postgrest":
        if not config.supabase_url or not config.supabase_service_key:
            raise RuntimeError("HEALTHASSIST_STORE=postgrest requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
        return PostgrestRowStore(base_url=f"{config.supabase_url}/rest/v1", api_key=config.supabase_service_key)
    return SQLiteRowStore(SQLiteHealthDB(config.db_path))


def _build_auth(config: Settings) -> AuthProvider:
    if config.auth_mode == "supabase":
        if not config.supabase_url or not config.supabase_service_key:
            raise RuntimeError("HEALTHASSIST_AUTH_MODE=supabase requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
        return SupabaseAuthProvider(base_url=config.supabase_url, api_key=config.supabase_service_key)
    return HeaderAuthProvider(allow_anonymous=config.allow_anonymous)


class HealthAssistantApp:
    def __init__(self, config: Settings) -> None:
        self.settings = config
        self.store = _build_store(config)
        self.reconciler = PersistenceReconciler(self.store)
        self.gateway: TextGenerationGateway = HttpTextGenerationGateway(
            select_provider(config.llm_provider, list(config.llm_providers)),
            timeout_seconds=config.llm_timeout_seconds,
        )
        self.synthesizer = AssessmentSynthesizer(self.gateway)
        self.responder = ChatResponder(self.gateway)
        self.onboarding = OnboardingService(self.reconciler)
        self.auth = _build_auth(config)

    def use_gateway(self, gateway: TextGenerationGateway) -> None:
        self.gateway = gateway
        self.synthesizer.gateway = gateway
        self.responder.gateway = gateway

    def submit_assessment(self, request: AssessmentRequest, user_id: str | None) -> SynthesisOutcome:
        outcome = self.synthesizer.synthesize(request)
        if outcome.is_failure:
            status = outcome.status if outcome.status != STATUS_OK else "sentinel-confidence"
            logger.error(
                "assessment synthesis escalated status=%s confidence=%s",
                status,
                outcome.result.confidence_score,
            )
            raise SentinelResultError(status=status, confidence=outcome.result.confidence_score)
        if not user_id:
            return outcome

        result = outcome.result
        insert = self.reconciler.insert_assessment(
            AssessmentRecord(
                user_id=user_id,
                symptoms=request.symptoms,
                pain_level=request.pain_level,
                duration=request.duration,
                medications_taken=request.medications_taken,
                additional_symptoms=request.additional_symptoms,
                urgency_level=result.urgency_level,
                confidence_score=result.confidence_score,
                recommendations=result.recommendations,
                timeline=result.timeline,
            )
        )
        refresh = self.reconciler.refresh_health_after_assessment(
            user_id,
            {
                "last_assessment": to_iso(utc_now()),
                "recent_symptoms": request.symptoms,
                "ai_recommendations": result.recommendations,
            },
        )
        outcome.notes.extend(warning for warning in (insert.warning, refresh.warning) if warning)
        return outcome

    def record_chat_turn(self, user_id: str, message: str, reply: ChatReply) -> None:
        self.reconciler.insert_chat_message(ChatMessageRecord(user_id=user_id, type="user", content=message))
        self.reconciler.insert_chat_message(
            ChatMessageRecord(user_id=user_id, type="ai", content=reply.text, confidence=reply.confidence)
        )


container = HealthAssistantApp(settings)
app = FastAPI(title="HealthAssist Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def _malformed_request(_request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(part) for part in error.get("loc", ()) if part != "body") for error in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": f"Malformed request fields: {', '.join(fields)}"})


def _current_user(request: Request) -> AuthUser:
    try:
        user = container.auth.current_user(dict(request.headers))
    except IdentityError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    if user is None:
        raise HTTPException(status_code=401, detail="Missing Authorization")
    return user


def _profile_store_failure(exc: PersistenceError) -> HTTPException:
    return HTTPException(status_code=500, detail=f"Profile store error ({exc.code}).")


@app.post("/assessment")
def post_assessment(payload: AssessmentPayload, response: Response):
    try:
        request = validate_assessment_input(payload.model_dump(by_alias=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    try:
        outcome = container.submit_assessment(request, (payload.user_id or "").strip() or None)
    except SentinelResultError as exc:
        raise HTTPException(
            status_code=500,
            detail={"error": "Assessment could not be generated", "status": exc.status},
        ) from exc
    response.headers["X-Synthesis-Status"] = outcome.status
    return outcome.result.as_payload()


@app.post("/chat")
def post_chat(payload: ChatPayload):
    try:
        reply = container.responder.respond(payload.message)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    user_id = (payload.user_id or "").strip()
    if user_id:
        container.record_chat_turn(user_id, (payload.message or "").strip(), reply)
    return reply.as_payload()


@app.get("/profile")
def get_profile(user_id: str | None = Query(default=None, alias="userId")):
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=400, detail="User ID is required")
    user_id = user_id.strip()
    try:
        account = container.reconciler.get_account_profile(user_id)
    except RecordNotFound as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    except PersistenceError as exc:
        logger.error("account profile read failed user_id=%s code=%s", user_id, exc.code)
        raise _profile_store_failure(exc) from exc
    try:
        health = container.reconciler.get_health_profile(user_id)
    except PersistenceError as exc:
        logger.warning("health profile read failed user_id=%s code=%s", user_id, exc.code)
        health = None
    return {"data": account.model_dump(), "healthProfile": health.model_dump() if health else None}


@app.post("/profile")
def upsert_profile(payload: ProfilePayload):
    user_id = (payload.user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID is required")
    data = payload.profile_data
    account_fields = {key: data[key] for key in _ACCOUNT_PROFILE_KEYS if key in data}
    tier = data.get("subscription_tier")
    if tier is not None:
        if tier not in SUBSCRIPTION_TIERS:
            raise HTTPException(status_code=400, detail="Invalid subscription_tier")
        account_fields["subscription_tier"] = tier
    try:
        account = container.reconciler.upsert_account_profile(user_id, account_fields)
    except PersistenceError as exc:
        logger.error("account profile upsert failed user_id=%s code=%s", user_id, exc.code)
        raise HTTPException(status_code=500, detail="Failed to create user profile") from exc

    health_fields = {column: data[key] for key, column in _HEALTH_PROFILE_KEYS.items() if data.get(key)}
    if health_fields:
        try:
            container.reconciler.upsert_health_profile(user_id, health_fields)
        except PersistenceError as exc:
            logger.warning("health profile upsert failed user_id=%s code=%s", user_id, exc.code)
    return {"success": True, "data": account.model_dump()}


@app.get("/onboarding/status")
def onboarding_status(request: Request):
    user = _current_user(request)
    try:
        evaluation = container.onboarding.evaluate(user)
    except PersistenceError as exc:
        raise _profile_store_failure(exc) from exc
    return evaluation.as_payload()


@app.post("/onboarding/personal-info")
def onboarding_personal_info(payload: PersonalInfoPayload, request: Request):
    user = _current_user(request)
    try:
        evaluation = container.onboarding.submit_personal_info(user, payload.model_dump(by_alias=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.error("personal info save failed user_id=%s code=%s", user.id, exc.code)
        raise _profile_store_failure(exc) from exc
    return evaluation.as_payload()


@app.post("/onboarding/subscription")
def onboarding_subscription(payload: SubscriptionPayload, request: Request):
    user = _current_user(request)
    try:
        evaluation = container.onboarding.choose_subscription(user, payload.tier)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.error("subscription update failed user_id=%s code=%s", user.id, exc.code)
        raise _profile_store_failure(exc) from exc
    return evaluation.as_payload()
