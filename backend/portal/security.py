"""Bearer token verification and the explicit request context.

Sign-in, magic links and password handling live on the hosted platform. It
issues HS256 tokens whose claims carry the user id (``sub``), the portal role
and, for client users, the company they belong to. This module verifies those
tokens and turns them into a :class:`RequestContext` that routers pass to the
aggregation services instead of reading ambient auth state.
"""

from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import hmac
import json
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

PORTAL_JWT_SECRET_ENV = "PORTAL_JWT_SECRET"
ACCESS_TOKEN_EXPIRE_MINUTES_ENV = "ACCESS_TOKEN_EXPIRE_MINUTES"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class SecurityConfigurationError(RuntimeError):
    """Raised when mandatory security settings are missing or invalid."""


class PortalRole(str, enum.Enum):
    ADMIN = "admin"
    TEAM = "team"
    CLIENT = "client"


@dataclass(frozen=True)
class RequestContext:
    """Who is asking: user id, role and (for clients) their company."""

    user_id: str
    role: PortalRole
    company_id: Optional[str] = None

    @property
    def is_client(self) -> bool:
        return self.role == PortalRole.CLIENT

    @property
    def is_staff(self) -> bool:
        return self.role in (PortalRole.ADMIN, PortalRole.TEAM)

    def can_access_company(self, company_id: str) -> bool:
        if self.is_staff:
            return True
        return self.company_id is not None and str(self.company_id) == str(company_id)


def _read_env_var(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise SecurityConfigurationError(f"Environment variable '{name}' is required")
    return value


@lru_cache(maxsize=1)
def _load_jwt_key() -> bytes:
    raw_secret = _read_env_var(PORTAL_JWT_SECRET_ENV)
    try:
        return base64.urlsafe_b64decode(raw_secret)
    except (ValueError, binascii.Error):
        return raw_secret.encode("utf-8")


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _encode_jwt(payload: dict[str, Any], key: bytes) -> str:
    header = {"typ": "JWT", "alg": "HS256"}
    header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    signature = hmac.new(key, signing_input, hashlib.sha256).digest()
    return f"{header_b64}.{payload_b64}.{_b64url_encode(signature)}"


def _decode_jwt(token: str, key: bytes) -> dict[str, Any]:
    try:
        header_b64, payload_b64, signature_b64 = token.split(".")
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    try:
        signature = _b64url_decode(signature_b64)
        payload_data = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, binascii.Error) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    expected_signature = hmac.new(key, signing_input, hashlib.sha256).digest()
    if not hmac.compare_digest(signature, expected_signature):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload_data.get("exp") is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    exp = int(payload_data["exp"])
    if datetime.now(timezone.utc) >= datetime.fromtimestamp(exp, tz=timezone.utc):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    return payload_data


def _resolve_access_token_expiry() -> timedelta:
    raw = os.getenv(ACCESS_TOKEN_EXPIRE_MINUTES_ENV)
    if not raw:
        return timedelta(minutes=60)
    try:
        minutes = int(raw)
    except ValueError as exc:
        raise SecurityConfigurationError("ACCESS_TOKEN_EXPIRE_MINUTES must be an integer") from exc
    if minutes <= 0:
        raise SecurityConfigurationError("ACCESS_TOKEN_EXPIRE_MINUTES must be positive")
    return timedelta(minutes=minutes)


def create_access_token(context: RequestContext) -> str:
    """Mint a token for ``context``; used by local tooling and tests."""

    expiry = datetime.now(timezone.utc) + _resolve_access_token_expiry()
    payload: dict[str, Any] = {
        "sub": context.user_id,
        "role": context.role.value,
        "exp": int(expiry.timestamp()),
    }
    if context.company_id:
        payload["company_id"] = str(context.company_id)
    return _encode_jwt(payload, _load_jwt_key())


def context_from_claims(claims: dict[str, Any]) -> RequestContext:
    user_id = claims.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        role = PortalRole(claims.get("role"))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown portal role") from exc

    company_id = claims.get("company_id") or None
    if role == PortalRole.CLIENT and company_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Client accounts must be linked to a company",
        )
    return RequestContext(user_id=user_id, role=role, company_id=company_id)


def get_request_context(token: str = Depends(oauth2_scheme)) -> RequestContext:
    """FastAPI dependency building the request context from the bearer token."""

    return context_from_claims(_decode_jwt(token, _load_jwt_key()))


def require_staff(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    """FastAPI dependency restricting an endpoint to admin and team users."""

    if not context.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Team access required")
    return context


def ensure_company_access(context: RequestContext, company_id: str) -> None:
    if not context.can_access_company(company_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this company",
        )
