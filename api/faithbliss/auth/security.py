import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import HTTPException
from passlib.context import CryptContext

from faithbliss.config import ACCESS_TOKEN_TTL_MINUTES, JWT_SECRET, REACTIVATION_TOKEN_TTL_MINUTES

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
ALGORITHM = "HS256"

# Token scopes. A reactivation token is handed to a deactivated account at login and
# is only accepted by the reactivate endpoint.
ACCESS_SCOPE = "access"
REACTIVATION_SCOPE = "reactivate"
TOKEN_SCOPES = {ACCESS_SCOPE, REACTIVATION_SCOPE}


def _require_secret() -> str:
    if not JWT_SECRET:
        raise HTTPException(status_code=500, detail="JWT secret not configured")
    return JWT_SECRET


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(
    user_id: str,
    email: str,
    ttl_minutes: int | None = None,
    scope: str = ACCESS_SCOPE,
) -> str:
    secret = _require_secret()
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=ttl_minutes or ACCESS_TOKEN_TTL_MINUTES)
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "scope": scope,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def create_reactivation_token(user_id: str, email: str) -> str:
    return create_access_token(user_id, email, ttl_minutes=REACTIVATION_TOKEN_TTL_MINUTES, scope=REACTIVATION_SCOPE)


def decode_access_token(token: str) -> dict[str, Any]:
    secret = _require_secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def token_scope(payload: dict[str, Any]) -> str:
    """Scope claim of a decoded token; tokens minted before scopes existed count as access tokens."""
    return str(payload.get("scope") or ACCESS_SCOPE)


def create_refresh_token() -> str:
    return secrets.token_urlsafe(48)


def hash_refresh_token(refresh_token: str) -> str:
    secret = _require_secret()
    return hashlib.sha256(f"{secret}:{refresh_token}".encode("utf-8")).hexdigest()
