from __future__ import annotations

import json

import httpx
import pytest

from health_store import AssessmentRecord, PersistenceError, PersistenceReconciler, PostgrestRowStore, RecordNotFound


def _store(handler) -> PostgrestRowStore:
    return PostgrestRowStore(
        base_url="https://db.test/rest/v1/",
        api_key="service-key",
        transport=httpx.MockTransport(handler),
    )


def test_select_one_sends_eq_filters_and_object_accept_header():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-a", "email": "a@example.com"})

    row = _store(handler).select_one("account_profiles", {"id": "user-a"})

    assert row == {"id": "user-a", "email": "a@example.com"}
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/account_profiles"
    assert request.url.params["id"] == "eq.user-a"
    assert request.url.params["select"] == "*"
    assert request.headers["accept"] == "application/vnd.pgrst.object+json"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["authorization"] == "Bearer service-key"


def test_no_rows_code_maps_to_not_found():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            406,
            json={"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"},
        )

    with pytest.raises(RecordNotFound) as excinfo:
        _store(handler).select_one("account_profiles", {"id": "ghost"})
    assert excinfo.value.is_not_found


def test_other_errors_keep_their_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})

    with pytest.raises(PersistenceError) as excinfo:
        _store(handler).insert("assessments", {"user_id": "user-a"})
    assert excinfo.value.code == "23505"
    assert not excinfo.value.is_not_found
    assert str(excinfo.value) == "duplicate key value"


def test_upsert_requests_merge_on_conflict_key():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[{"user_id": "user-a", "health_goals": "Swim"}])

    row = _store(handler).upsert("health_profiles", {"user_id": "user-a", "health_goals": "Swim"}, "user_id")

    assert row["health_goals"] == "Swim"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.params["on_conflict"] == "user_id"
    assert "resolution=merge-duplicates" in request.headers["prefer"]
    assert json.loads(request.content) == {"user_id": "user-a", "health_goals": "Swim"}


def test_ignored_duplicate_seed_returns_stored_row():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(201, json=[])
        return httpx.Response(200, json={"id": "user-a", "email": "first@example.com"})

    row = _store(handler).upsert(
        "account_profiles",
        {"id": "user-a", "email": "late@example.com"},
        "id",
        ignore_duplicates=True,
    )

    assert row == {"id": "user-a", "email": "first@example.com"}
    assert "resolution=ignore-duplicates" in seen[0].headers["prefer"]
    assert seen[1].method == "GET"
    assert seen[1].url.params["id"] == "eq.user-a"


def test_non_json_success_body_is_a_persistence_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, text="<html>ok</html>", headers={"Content-Type": "text/html"})

    with pytest.raises(PersistenceError) as excinfo:
        _store(handler).insert("assessments", {"user_id": "user-a"})
    assert excinfo.value.code == "invalid_response"


def test_non_json_body_does_not_fail_assessment_write():
    store = _store(lambda request: httpx.Response(201, text="<html>ok</html>"))
    record = AssessmentRecord(
        user_id="user-a",
        symptoms="Sore throat",
        pain_level="3-4 (Mild-Moderate)",
        duration="1-3 days",
        medications_taken="No medication taken",
        urgency_level="mild",
        confidence_score=82,
        recommendations="Warm fluids",
        timeline="3 days",
    )

    result = PersistenceReconciler(store).insert_assessment(record)

    assert result.ok is False
    assert result.error.code == "invalid_response"


def test_update_patches_filtered_rows_and_refuses_blanket_updates():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "user-a", "subscription_tier": "family"}])

    store = _store(handler)
    rows = store.update("account_profiles", {"subscription_tier": "family"}, {"id": "user-a"})

    assert rows == [{"id": "user-a", "subscription_tier": "family"}]
    assert seen[0].method == "PATCH"
    assert seen[0].url.params["id"] == "eq.user-a"

    with pytest.raises(PersistenceError) as excinfo:
        store.update("account_profiles", {"subscription_tier": "free"}, {})
    assert excinfo.value.code == "missing_filter"
    assert len(seen) == 1


def test_null_filters_use_is_operator():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    assert _store(handler).select("account_profiles", {"subscription_tier": None}) == []
    assert seen[0].url.params["subscription_tier"] == "is.null"


def test_transport_failures_become_persistence_errors():
    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("connect timed out", request=request)

    def refused(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PersistenceError) as timeout:
        _store(slow).select("assessments", {"user_id": "user-a"})
    with pytest.raises(PersistenceError) as unreachable:
        _store(refused).select("assessments", {"user_id": "user-a"})

    assert timeout.value.code == "timeout"
    assert unreachable.value.code == "transport_error"
