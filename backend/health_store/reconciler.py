from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as SchemaError

from .errors import PersistenceError, RecordNotFound
from .records import (
    HEALTH_PROFILE_WRITABLE_FIELDS,
    AccountProfile,
    AssessmentRecord,
    ChatMessageRecord,
    HealthProfile,
    safe_parse_list,
)
from .row_store import RowStore

logger = logging.getLogger(__name__)

ACCOUNT_TABLE = "account_profiles"
HEALTH_TABLE = "health_profiles"
ASSESSMENT_TABLE = "assessments"
CHAT_TABLE = "chat_messages"

ACCOUNT_WRITABLE_FIELDS = frozenset(
    {
        "email",
        "first_name",
        "last_name",
        "phone",
        "date_of_birth",
        "gender",
        "address",
        "emergency_contact",
        "subscription_tier",
        "health_score",
    }
)


@dataclass
class WriteResult:
    ok: bool
    row: dict[str, Any] | None = None
    error: PersistenceError | None = None

    @property
    def warning(self) -> str | None:
        if self.ok or self.error is None:
            return None
        return f"{self.error.code}: {self.error}"


def _validated(model: type, row: dict[str, Any], table: str):
    try:
        return model.model_validate(row)
    except SchemaError as exc:
        raise PersistenceError(f"Invalid {table} row: {exc.error_count()} field error(s).", code="invalid_record") from exc


class PersistenceReconciler:
    def __init__(self, store: RowStore) -> None:
        self.store = store

    def get_account_profile(self, user_id: str) -> AccountProfile:
        row = self.store.select_one(ACCOUNT_TABLE, {"id": user_id})
        return _validated(AccountProfile, row, ACCOUNT_TABLE)

    def create_account_profile(self, user_id: str, seed_fields: dict[str, Any]) -> AccountProfile:
        seed = {key: value for key, value in seed_fields.items() if key in ACCOUNT_WRITABLE_FIELDS}
        seed.setdefault("subscription_tier", None)
        seed.setdefault("health_score", 0)
        record = _validated(AccountProfile, {"id": user_id, **seed}, ACCOUNT_TABLE)
        # Insert-if-absent: a session that lost the race gets the row that won, not a key violation.
        row = self.store.upsert(
            ACCOUNT_TABLE,
            record.model_dump(exclude={"created_at", "updated_at"}),
            "id",
            ignore_duplicates=True,
        )
        return _validated(AccountProfile, row, ACCOUNT_TABLE)

    def get_or_create_account_profile(
        self,
        user_id: str,
        seed_fields: dict[str, Any],
    ) -> tuple[AccountProfile, bool]:
        try:
            return self.get_account_profile(user_id), False
        except RecordNotFound:
            logger.info("account profile missing, creating seed row user_id=%s", user_id)
            return self.create_account_profile(user_id, seed_fields), True

    def upsert_account_profile(self, user_id: str, fields: dict[str, Any]) -> AccountProfile:
        values = {key: value for key, value in fields.items() if key in ACCOUNT_WRITABLE_FIELDS}
        row = self.store.upsert(ACCOUNT_TABLE, {"id": user_id, **values}, "id")
        return _validated(AccountProfile, row, ACCOUNT_TABLE)

    def update_account_profile(self, user_id: str, fields: dict[str, Any]) -> AccountProfile:
        unknown = sorted(set(fields) - ACCOUNT_WRITABLE_FIELDS)
        if unknown:
            raise PersistenceError(f"Unsupported account fields: {', '.join(unknown)}", code="invalid_fields")
        rows = self.store.update(ACCOUNT_TABLE, fields, {"id": user_id})
        if not rows:
            raise RecordNotFound(f"No account profile for user {user_id}.")
        return _validated(AccountProfile, rows[0], ACCOUNT_TABLE)

    def get_health_profile(self, user_id: str) -> HealthProfile | None:
        try:
            row = self.store.select_one(HEALTH_TABLE, {"user_id": user_id})
        except RecordNotFound:
            return None
        return _validated(HealthProfile, row, HEALTH_TABLE)

    def upsert_health_profile(self, user_id: str, partial_fields: dict[str, Any]) -> HealthProfile:
        unknown = sorted(set(partial_fields) - HEALTH_PROFILE_WRITABLE_FIELDS)
        if unknown:
            raise PersistenceError(f"Unsupported health profile fields: {', '.join(unknown)}", code="invalid_fields")
        values: dict[str, Any] = {}
        for key, value in partial_fields.items():
            values[key] = safe_parse_list(value) if key in {"allergies", "medications", "conditions"} else value
        row = self.store.upsert(HEALTH_TABLE, {"user_id": user_id, **values}, "user_id")
        return _validated(HealthProfile, row, HEALTH_TABLE)

    def insert_assessment(self, record: AssessmentRecord) -> WriteResult:
        try:
            row = self.store.insert(ASSESSMENT_TABLE, record.model_dump(exclude_none=True))
        except PersistenceError as exc:
            logger.warning("assessment insert failed user_id=%s code=%s", record.user_id, exc.code)
            return WriteResult(ok=False, error=exc)
        return WriteResult(ok=True, row=row)

    def refresh_health_after_assessment(self, user_id: str, fields: dict[str, Any]) -> WriteResult:
        try:
            profile = self.upsert_health_profile(user_id, fields)
        except PersistenceError as exc:
            logger.warning("health profile refresh failed user_id=%s code=%s", user_id, exc.code)
            return WriteResult(ok=False, error=exc)
        return WriteResult(ok=True, row=profile.model_dump())

    def insert_chat_message(self, record: ChatMessageRecord) -> WriteResult:
        try:
            row = self.store.insert(CHAT_TABLE, record.model_dump(exclude_none=True))
        except PersistenceError as exc:
            logger.warning("chat message insert failed user_id=%s code=%s", record.user_id, exc.code)
            return WriteResult(ok=False, error=exc)
        return WriteResult(ok=True, row=row)
