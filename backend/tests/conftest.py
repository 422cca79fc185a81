from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from fakes import ScriptedGateway  # noqa: E402

_PROVIDER_KEYS = ("GOOGLE_GEMINI_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY")


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "healthassist-test.sqlite"
    monkeypatch.setenv("HEALTHASSIST_DB_PATH", str(db_path))
    monkeypatch.setenv("HEALTHASSIST_STORE", "sqlite")
    monkeypatch.setenv("HEALTHASSIST_AUTH_MODE", "header")
    monkeypatch.setenv("ALLOW_ANON", "false")
    # No real provider calls in CI; tests install scripted gateways instead.
    for key in _PROVIDER_KEYS:
        monkeypatch.delenv(key, raising=False)

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def gateway(backend_module) -> ScriptedGateway:
    scripted = ScriptedGateway()
    backend_module.container.use_gateway(scripted)
    return scripted


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _make(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {user_id}"}

    return _make
