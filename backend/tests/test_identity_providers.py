from __future__ import annotations

import httpx
import pytest

from onboarding import HeaderAuthProvider, IdentityError, SupabaseAuthProvider


def test_header_provider_prefers_explicit_user_id():
    provider = HeaderAuthProvider()
    user = provider.current_user(
        {"x-user-id": "patient-7", "authorization": "Bearer other", "x-user-first-name": "Mo"}
    )
    assert user.id == "patient-7"
    assert user.seed_fields() == {"email": None, "first_name": "Mo", "last_name": None}


def test_header_provider_rejects_malformed_user_id():
    with pytest.raises(IdentityError):
        HeaderAuthProvider().current_user({"x-user-id": "../etc/passwd"})


def test_header_provider_hashes_long_tokens():
    user = HeaderAuthProvider().current_user({"authorization": "Bearer " + "x" * 200})
    assert user.id.startswith("token_")
    assert len(user.id) == len("token_") + 24


def test_header_provider_anonymous_mode():
    assert HeaderAuthProvider().current_user({}) is None
    assert HeaderAuthProvider(allow_anonymous=True).current_user({}).id == "demo-user"


def _supabase(handler) -> SupabaseAuthProvider:
    return SupabaseAuthProvider(
        base_url="https://auth.test",
        api_key="anon-key",
        transport=httpx.MockTransport(handler),
    )


def test_supabase_provider_resolves_user_record():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/auth/v1/user"
        assert request.headers["authorization"] == "Bearer session-token"
        return httpx.Response(
            200,
            json={"id": "uuid-1", "email": "u@example.com", "user_metadata": {"first_name": "Uma"}},
        )

    user = _supabase(handler).current_user({"authorization": "Bearer session-token"})

    assert user.id == "uuid-1"
    assert user.email == "u@example.com"
    assert user.seed_fields()["first_name"] == "Uma"


def test_supabase_provider_treats_rejected_token_as_anonymous():
    provider = _supabase(lambda request: httpx.Response(401, json={"msg": "invalid JWT"}))
    assert provider.current_user({"authorization": "Bearer expired"}) is None
    assert provider.current_user({}) is None


def test_supabase_provider_outage_is_a_gateway_error():
    provider = _supabase(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(IdentityError) as excinfo:
        provider.current_user({"authorization": "Bearer token"})
    assert excinfo.value.status_code == 502


def test_supabase_provider_garbled_reply_is_a_gateway_error():
    provider = _supabase(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(IdentityError) as excinfo:
        provider.current_user({"authorization": "Bearer token"})
    assert excinfo.value.status_code == 502
