from __future__ import annotations

from fakes import FlakyStore, store_down

PERSONAL_INFO = {
    "phone": "+1 412 555 0142",
    "dateOfBirth": "1979-11-30",
    "gender": "non-binary",
    "address": "200 Craig St, Pittsburgh",
    "emergencyContact": "Jordan +1 412 555 0143",
    "allergies": "sulfa",
    "currentMedications": "metformin, lisinopril",
    "medicalConditions": "",
    "healthGoals": "Keep A1C under 7",
}


def test_get_profile_requires_user_id(client):
    assert client.get("/profile").status_code == 400
    assert client.get("/profile", params={"userId": "  "}).status_code == 400


def test_get_profile_unknown_user_is_404(client):
    response = client.get("/profile", params={"userId": "ghost"})
    assert response.status_code == 404
    assert response.json()["detail"] == "User not found"


def test_post_then_get_profile(client):
    created = client.post(
        "/profile",
        json={
            "userId": "user-a",
            "profileData": {
                "email": "a@example.com",
                "first_name": "Ana",
                "phone": "555-0100",
                "allergies": "latex",
                "health_goals": "Run a marathon",
            },
        },
    )
    assert created.status_code == 200
    assert created.json()["success"] is True
    assert created.json()["data"]["subscription_tier"] is None

    fetched = client.get("/profile", params={"userId": "user-a"})
    assert fetched.status_code == 200
    body = fetched.json()
    assert body["data"]["first_name"] == "Ana"
    assert body["data"]["health_score"] == 0
    assert body["healthProfile"]["allergies"] == ["latex"]
    assert body["healthProfile"]["health_goals"] == "Run a marathon"


def test_post_profile_validation(client):
    assert client.post("/profile", json={"profileData": {"email": "x@example.com"}}).status_code == 400
    invalid_tier = client.post("/profile", json={"userId": "user-a", "profileData": {"subscription_tier": "gold"}})
    assert invalid_tier.status_code == 400


def test_post_profile_store_failure_is_500(client, backend_module):
    container = backend_module.container
    container.reconciler.store = FlakyStore(container.store, {("upsert", "account_profiles"): store_down()})

    response = client.post("/profile", json={"userId": "user-a", "profileData": {"email": "a@example.com"}})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to create user profile"


def test_get_profile_tolerates_health_read_failure(client, backend_module):
    client.post("/profile", json={"userId": "user-a", "profileData": {"health_goals": "Stretch daily"}})
    container = backend_module.container
    container.reconciler.store = FlakyStore(container.store, {("select", "health_profiles"): store_down()})

    response = client.get("/profile", params={"userId": "user-a"})

    assert response.status_code == 200
    assert response.json()["healthProfile"] is None


def test_onboarding_requires_identity(client):
    assert client.get("/onboarding/status").status_code == 401
    bad_header = client.get("/onboarding/status", headers={"X-User-Id": "bad id with spaces"})
    assert bad_header.status_code == 400


def test_onboarding_status_lazily_creates_account(client, auth_headers, backend_module):
    response = client.get(
        "/onboarding/status",
        headers={**auth_headers("user-new"), "X-User-Email": "new@example.com"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "verdict": "NEEDS_PERSONAL_INFO",
        "nextRoute": "/complete-profile",
        "missingFields": ["phone", "date_of_birth", "gender", "address", "emergency_contact", "health_goals"],
        "states": ["UNKNOWN", "EVALUATING", "CREATING", "EVALUATING", "NEEDS_PERSONAL_INFO"],
        "createdAccount": True,
    }
    row = backend_module.container.store.select_one("account_profiles", {"id": "user-new"})
    assert row["email"] == "new@example.com"


def test_onboarding_status_store_failure_is_500(client, auth_headers, backend_module):
    container = backend_module.container
    container.reconciler.store = FlakyStore(container.store, {("select", "account_profiles"): store_down()})

    response = client.get("/onboarding/status", headers=auth_headers("user-a"))

    assert response.status_code == 500
    assert ("upsert", "account_profiles") not in container.reconciler.store.calls


def test_full_onboarding_flow(client, auth_headers):
    headers = auth_headers("user-flow")

    incomplete = client.post("/onboarding/personal-info", headers=headers, json={**PERSONAL_INFO, "phone": " "})
    assert incomplete.status_code == 400
    assert incomplete.json()["detail"] == "Please fill in all required fields"

    info = client.post("/onboarding/personal-info", headers=headers, json=PERSONAL_INFO)
    assert info.status_code == 200
    assert info.json()["verdict"] == "NEEDS_SUBSCRIPTION"
    assert info.json()["nextRoute"] == "/choose-subscription"

    bad_tier = client.post("/onboarding/subscription", headers=headers, json={"tier": "platinum"})
    assert bad_tier.status_code == 400

    chosen = client.post("/onboarding/subscription", headers=headers, json={"tier": "premium"})
    assert chosen.status_code == 200
    assert chosen.json()["verdict"] == "COMPLETE"
    assert chosen.json()["nextRoute"] == "/dashboard"

    profile = client.get("/profile", params={"userId": "user-flow"}).json()
    assert profile["data"]["subscription_tier"] == "premium"
    assert profile["healthProfile"]["medications"] == ["metformin", "lisinopril"]
    assert profile["healthProfile"]["conditions"] == []


def test_assessment_does_not_clobber_onboarding_fields(client, auth_headers, gateway):
    headers = auth_headers("user-mix")
    client.post("/onboarding/personal-info", headers=headers, json=PERSONAL_INFO)
    gateway.reply = '{"urgencyLevel":"mild","confidenceScore":88,"recommendations":"Monitor","timeline":"1 week"}'

    assessment = client.post(
        "/assessment",
        json={
            "symptoms": "Slight dizziness",
            "painLevel": "1-2 (Mild)",
            "duration": "Less than 24 hours",
            "medicationsTaken": "No medication taken",
            "userId": "user-mix",
        },
    )
    assert assessment.status_code == 200

    health = client.get("/profile", params={"userId": "user-mix"}).json()["healthProfile"]
    assert health["health_goals"] == "Keep A1C under 7"
    assert health["allergies"] == ["sulfa"]
    assert health["recent_symptoms"] == "Slight dizziness"
