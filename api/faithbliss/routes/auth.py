import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from .. import repo as auth_repo
from ..auth.deps import SESSION_COOKIE_NAME, get_current_user
from ..auth.security import (
    create_access_token,
    create_reactivation_token,
    create_refresh_token,
    hash_password,
    hash_refresh_token,
    verify_password,
)
from ..config import (
    ACCESS_TOKEN_TTL_MINUTES,
    REACTIVATION_TOKEN_TTL_MINUTES,
    REFRESH_TOKEN_TTL_DAYS,
    RL_AUTH_LOGIN_LIMIT,
    RL_AUTH_REGISTER_LIMIT,
    RL_WINDOW_SECONDS,
)
from ..http_helpers import normalize_email, validate_registration_input
from ..schemas import LoginRequest, RefreshRequest, RegisterRequest
from ..services import profiles
from ..services.rate_limit import rate_limit_dependency

logger = logging.getLogger(__name__)

router = APIRouter()

RL_AUTH_REGISTER = rate_limit_dependency("auth_register", RL_AUTH_REGISTER_LIMIT, RL_WINDOW_SECONDS)
RL_AUTH_LOGIN = rate_limit_dependency("auth_login", RL_AUTH_LOGIN_LIMIT, RL_WINDOW_SECONDS)


def _issue_tokens(user: dict[str, Any]) -> dict[str, Any]:
    """Issue access and refresh tokens for a user."""
    user_id = str(user["id"])
    access_token = create_access_token(user_id=user_id, email=str(user["email"]), ttl_minutes=ACCESS_TOKEN_TTL_MINUTES)
    logger.info(f"[auth] tokens issued user_id={user_id} token_prefix={access_token[:8]}...")

    refresh_token = create_refresh_token()
    expires_at = datetime.now(timezone.utc) + timedelta(days=REFRESH_TOKEN_TTL_DAYS)
    auth_repo.create_refresh_token_row(user_id, hash_refresh_token(refresh_token), expires_at)
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_TTL_MINUTES * 60,
    }


def _is_bearer_mode(request: Request) -> bool:
    """Check if client requested bearer token mode (for mobile clients)."""
    auth_mode = str(request.headers.get("X-Auth-Mode") or "").strip().lower()
    return auth_mode == "bearer"


def _set_session_cookie(response: Response, access_token: str, ttl_minutes: int = ACCESS_TOKEN_TTL_MINUTES) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=False,  # Set to True in production with HTTPS
        samesite="lax",
        path="/",
        max_age=ttl_minutes * 60,
    )


def start_session(user: dict[str, Any], request: Request, response: Response) -> dict[str, Any]:
    tokens = _issue_tokens(user)
    _set_session_cookie(response, tokens["access_token"])
    body: dict[str, Any] = {"user": profiles.private_profile(user)}
    if _is_bearer_mode(request):
        body.update(tokens)
    return body


def _reactivation_response(user: dict[str, Any], request: Request, response: Response) -> dict[str, Any]:
    """Hand a deactivated account a token that only /users/me/reactivate accepts."""
    token = create_reactivation_token(user_id=str(user["id"]), email=str(user["email"]))
    _set_session_cookie(response, token, ttl_minutes=REACTIVATION_TOKEN_TTL_MINUTES)
    body: dict[str, Any] = {"user": profiles.private_profile(user), "reactivation_required": True}
    if _is_bearer_mode(request):
        body.update(
            {
                "reactivation_token": token,
                "token_type": "bearer",
                "expires_in": REACTIVATION_TOKEN_TTL_MINUTES * 60,
            }
        )
    return body


@router.post("/register", status_code=201)
def auth_register(payload: RegisterRequest, request: Request, response: Response, _: None = RL_AUTH_REGISTER) -> dict[str, Any]:
    email, password = validate_registration_input(payload.email, payload.password)
    fields = payload.model_dump(mode="json", exclude={"password"})
    fields["email"] = email
    fields["name"] = fields["name"].strip()
    user = profiles.register_user(fields, hash_password(password))
    return start_session(user, request, response)


@router.post("/login")
def auth_login(payload: LoginRequest, request: Request, response: Response, _: None = RL_AUTH_LOGIN) -> dict[str, Any]:
    user = auth_repo.get_user_by_email(normalize_email(payload.email))
    if not user or not verify_password(payload.password, str(user["password_hash"])):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.get("is_active"):
        logger.info(f"[auth] login on deactivated account user_id={user['id']}, reactivation token issued")
        return _reactivation_response(user, request, response)

    auth_repo.update_last_seen(str(user["id"]))
    logger.info(f"[auth] login user_id={user['id']}")
    return start_session(user, request, response)


@router.post("/refresh")
def auth_refresh(payload: RefreshRequest) -> dict[str, Any]:
    token = payload.refresh_token.strip()
    if not token:
        raise HTTPException(status_code=400, detail="refresh_token required")

    token_hash = hash_refresh_token(token)
    row = auth_repo.get_refresh_token_row(token_hash)
    if not row or row.get("revoked_at") is not None:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if row.get("expires_at") is None or row["expires_at"] < datetime.now(timezone.utc):
        raise HTTPException(status_code=401, detail="Refresh token expired")

    user = auth_repo.get_user_by_id(str(row["user_id"]))
    if not user or not user.get("is_active"):
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    new_refresh = create_refresh_token()
    new_exp = datetime.now(timezone.utc) + timedelta(days=REFRESH_TOKEN_TTL_DAYS)
    auth_repo.rotate_refresh_token(token_hash, str(user["id"]), hash_refresh_token(new_refresh), new_exp)

    access_token = create_access_token(user_id=str(user["id"]), email=str(user["email"]), ttl_minutes=ACCESS_TOKEN_TTL_MINUTES)
    return {
        "access_token": access_token,
        "refresh_token": new_refresh,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_TTL_MINUTES * 60,
    }


@router.post("/logout")
def auth_logout(response: Response, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    auth_repo.revoke_user_refresh_tokens(str(current_user["id"]))
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
    return {"status": "ok"}
