from .database import TABLE_SPECS, SQLiteHealthDB
from .errors import NOT_FOUND_CODE, PersistenceError, RecordNotFound
from .postgrest_store import PostgrestRowStore
from .reconciler import PersistenceReconciler, WriteResult
from .records import (
    ASSESSMENT_FIELD_GROUP,
    ONBOARDING_FIELD_GROUP,
    SUBSCRIPTION_TIERS,
    AccountProfile,
    AssessmentRecord,
    ChatMessageRecord,
    HealthProfile,
    safe_parse_list,
)
from .row_store import RowStore, SQLiteRowStore

__all__ = [
    "ASSESSMENT_FIELD_GROUP",
    "NOT_FOUND_CODE",
    "ONBOARDING_FIELD_GROUP",
    "SUBSCRIPTION_TIERS",
    "TABLE_SPECS",
    "AccountProfile",
    "AssessmentRecord",
    "ChatMessageRecord",
    "HealthProfile",
    "PersistenceError",
    "PersistenceReconciler",
    "PostgrestRowStore",
    "RecordNotFound",
    "RowStore",
    "SQLiteHealthDB",
    "SQLiteRowStore",
    "WriteResult",
    "safe_parse_list",
]
