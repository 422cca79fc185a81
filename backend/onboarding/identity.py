from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

_TRUSTED_USER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:@-]{1,63}$")


class IdentityError(Exception):
    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def seed_fields(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "first_name": self.metadata.get("first_name"),
            "last_name": self.metadata.get("last_name"),
        }


class AuthProvider(Protocol):
    def current_user(self, headers: dict[str, str]) -> AuthUser | None: ...


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        return ""
    return authorization.replace("Bearer", "", 1).strip()


class HeaderAuthProvider:
    """Resolves the caller from ``X-User-Id`` or an opaque bearer token issued upstream."""

    def __init__(self, *, allow_anonymous: bool = False) -> None:
        self.allow_anonymous = allow_anonymous

    def current_user(self, headers: dict[str, str]) -> AuthUser | None:
        email = (headers.get("x-user-email") or "").strip() or None
        metadata = {
            key: value.strip()
            for key, value in (
                ("first_name", headers.get("x-user-first-name") or ""),
                ("last_name", headers.get("x-user-last-name") or ""),
            )
            if value.strip()
        }
        x_user_id = headers.get("x-user-id")
        if x_user_id is not None:
            candidate = x_user_id.strip()
            if not _TRUSTED_USER_ID_RE.fullmatch(candidate):
                raise IdentityError("Invalid X-User-Id")
            return AuthUser(id=candidate, email=email, metadata=metadata)

        raw = _bearer_token(headers.get("authorization"))
        if not raw:
            if self.allow_anonymous:
                return AuthUser(id="demo-user", email=email, metadata=metadata)
            return None
        if len(raw) > 96:
            raw = f"token_{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:24]}"
        return AuthUser(id=raw, email=email, metadata=metadata)


class SupabaseAuthProvider:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout_seconds, connect=5.0)
        self._transport = transport

    def current_user(self, headers: dict[str, str]) -> AuthUser | None:
        token = _bearer_token(headers.get("authorization"))
        if not token:
            return None
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.get(
                    f"{self._base_url}/auth/v1/user",
                    headers={"apikey": self._api_key, "Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as exc:
            raise IdentityError(f"Auth provider unreachable: {exc}", status_code=502) from exc
        if response.status_code in {401, 403}:
            return None
        if response.status_code >= 400:
            raise IdentityError(f"Auth provider error: HTTP {response.status_code}", status_code=502)
        try:
            payload = response.json()
        except ValueError as exc:
            raise IdentityError("Auth provider returned a non-JSON body", status_code=502) from exc
        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not isinstance(user_id, str) or not user_id:
            logger.warning("auth provider returned a user without id")
            return None
        metadata = payload.get("user_metadata")
        return AuthUser(
            id=user_id,
            email=payload.get("email"),
            metadata=metadata if isinstance(metadata, dict) else {},
        )
