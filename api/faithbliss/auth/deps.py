"""
Authentication dependencies for FastAPI.

Supports two auth modes:
1. Cookie-based session (primary for web): httpOnly cookie contains access token
2. Bearer token (mobile/API clients): Authorization header with Bearer token

WebSocket clients pass the access token as the ``token`` query parameter.
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Header, HTTPException, Request
from pydantic import BaseModel

from faithbliss import repo
from faithbliss.auth.security import REACTIVATION_SCOPE, TOKEN_SCOPES, decode_access_token, token_scope
from faithbliss.config import DEV_MODE

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "fb_session"


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


class AuthError(Exception):
    """Raised when authentication fails with detailed reason."""

    def __init__(self, reason: str, detail: str = "unauthorized", status_code: int = 401):
        self.reason = reason
        self.detail = detail
        self.status_code = status_code
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _log_auth_failure(
    reason: str,
    trace_id: str,
    token_prefix: str | None = None,
    auth_source: str | None = None,
    user_id: str | None = None,
) -> None:
    logger.warning(
        f"[AUTH_FAILURE] trace_id={trace_id} reason={reason} source={auth_source} "
        f"token_prefix={token_prefix} user_id={user_id}"
    )


def _error_detail(err: AuthError) -> dict[str, Any]:
    if DEV_MODE:
        return AuthErrorDetail(message=err.detail, reason=err.reason, trace_id=err.trace_id).model_dump()
    return {"message": err.detail, "trace_id": err.trace_id}


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def resolve_user_from_token(token: str, auth_source: str, allow_inactive: bool = False) -> dict[str, Any]:
    """
    Validate a JWT and return the active user row.

    With ``allow_inactive`` a deactivated account and a reactivation-scoped token are accepted.

    Raises AuthError; callers translate it for HTTP or WebSocket transports.
    """
    token_prefix = token[:8] + "..." if len(token) > 8 else token
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code != 401:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        err = AuthError(reason=reason)
        _log_auth_failure(reason, err.trace_id, token_prefix, auth_source)
        raise err

    user_id = str(payload.get("sub", ""))
    if not user_id:
        err = AuthError(reason="token_missing_subject")
        _log_auth_failure(err.reason, err.trace_id, token_prefix, auth_source)
        raise err

    scope = token_scope(payload)
    if scope not in TOKEN_SCOPES:
        err = AuthError(reason="scope_invalid")
        _log_auth_failure(err.reason, err.trace_id, token_prefix, auth_source, user_id)
        raise err
    if scope == REACTIVATION_SCOPE and not allow_inactive:
        err = AuthError(reason="reactivation_only", detail="Token only valid for reactivation", status_code=403)
        _log_auth_failure(err.reason, err.trace_id, token_prefix, auth_source, user_id)
        raise err

    user = repo.get_user_by_id(user_id)
    if not user:
        err = AuthError(reason="token_user_not_found")
        _log_auth_failure(err.reason, err.trace_id, token_prefix, auth_source, user_id)
        raise err

    if not allow_inactive and not user.get("is_active"):
        err = AuthError(reason="account_deactivated", detail="Account deactivated", status_code=403)
        _log_auth_failure(err.reason, err.trace_id, token_prefix, auth_source, user_id)
        raise err

    logger.debug(f"[auth] token valid user_id={user_id} source={auth_source}")
    return user


def get_current_user(
    request: Request,
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    Get current user from cookie session or bearer token.

    Priority:
    1. Cookie session token (httpOnly cookie set by login/register)
    2. Bearer token in Authorization header
    """
    try:
        if session_token:
            user = resolve_user_from_token(session_token, "cookie")
        elif authorization:
            user = resolve_user_from_token(_extract_bearer(authorization), "bearer")
        else:
            raise AuthError(reason="missing_token", detail="Authentication required")
    except AuthError as e:
        if e.reason in {"missing_token", "malformed_token"}:
            _log_auth_failure(e.reason, e.trace_id, auth_source="bearer" if authorization else "none")
        raise HTTPException(status_code=e.status_code, detail=_error_detail(e))
    request.state.user_id = str(user["id"])
    return user


def authenticate_websocket_token(token: str | None) -> dict[str, Any] | None:
    """Return the user for a WebSocket token, or None when the socket must be refused."""
    if not token:
        _log_auth_failure("missing_token", str(uuid.uuid4()), auth_source="ws")
        return None
    try:
        return resolve_user_from_token(token, "ws")
    except AuthError:
        return None


def get_current_user_allow_inactive(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Like get_current_user, but lets a deactivated account through (used by reactivate)."""
    try:
        if session_token:
            return resolve_user_from_token(session_token, "cookie", allow_inactive=True)
        if authorization:
            return resolve_user_from_token(_extract_bearer(authorization), "bearer", allow_inactive=True)
        raise AuthError(reason="missing_token", detail="Authentication required")
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=_error_detail(e))
