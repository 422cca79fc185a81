from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, MutableMapping

from triage_core.gateway import ProviderConfig, provider_candidates

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TRUE_VALUES = {"1", "true", "yes"}
_BACKEND_DIR = Path(__file__).resolve().parent
_ENV_FILES = (_BACKEND_DIR.parent / ".env", _BACKEND_DIR / ".env")


def _parse_env_line(raw: str) -> tuple[str, str] | None:
    line = raw.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    if not line or line.startswith("#"):
        return None
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not _ENV_KEY_RE.fullmatch(key):
        return None
    value = value.strip()
    if value[:1] in ("'", '"') and len(value) > 1 and value.endswith(value[0]):
        value = value[1:-1]
    return key, value


def read_env_file(path: Path) -> dict[str, str]:
    """Parse a dotenv file into a dict; a missing or unreadable file yields nothing."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    pairs = (_parse_env_line(line) for line in text.splitlines())
    return dict(pair for pair in pairs if pair is not None)


def bootstrap_local_env(
    env: MutableMapping[str, str] | None = None,
    files: Iterable[Path] = _ENV_FILES,
) -> None:
    # Real environment wins over .env; the repo-root file wins over backend/.env.
    target = os.environ if env is None else env
    for path in files:
        for key, value in read_env_file(path).items():
            target.setdefault(key, value)


def _flag(env: Mapping[str, str], key: str, default: str = "false") -> bool:
    return (env.get(key) or default).strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class Settings:
    store_backend: str = "sqlite"
    db_path: str = str(Path(__file__).resolve().parent / "healthassist.sqlite")
    supabase_url: str = ""
    supabase_service_key: str = ""
    llm_provider: str = "auto"
    llm_timeout_seconds: float = 25.0
    llm_providers: tuple[ProviderConfig, ...] = field(default_factory=tuple)
    auth_mode: str = "header"
    allow_anonymous: bool = False
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        defaults = cls()
        try:
            timeout = float(env.get("HEALTHASSIST_LLM_TIMEOUT_SECONDS") or defaults.llm_timeout_seconds)
        except ValueError:
            timeout = defaults.llm_timeout_seconds
        origins = env.get("ALLOWED_ORIGINS") or ",".join(defaults.allowed_origins)
        return cls(
            store_backend=(env.get("HEALTHASSIST_STORE") or defaults.store_backend).strip().lower(),
            db_path=env.get("HEALTHASSIST_DB_PATH") or defaults.db_path,
            supabase_url=(env.get("SUPABASE_URL") or "").strip().rstrip("/"),
            supabase_service_key=(env.get("SUPABASE_SERVICE_ROLE_KEY") or "").strip(),
            llm_provider=(env.get("HEALTHASSIST_LLM_PROVIDER") or defaults.llm_provider).strip().lower(),
            llm_timeout_seconds=max(1.0, timeout),
            llm_providers=tuple(provider_candidates(env)),
            auth_mode=(env.get("HEALTHASSIST_AUTH_MODE") or defaults.auth_mode).strip().lower(),
            allow_anonymous=_flag(env, "ALLOW_ANON"),
            allowed_origins=tuple(origin.strip() for origin in origins.split(",") if origin.strip()),
            log_level=(env.get("HEALTHASSIST_LOG_LEVEL") or defaults.log_level).strip().upper(),
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
