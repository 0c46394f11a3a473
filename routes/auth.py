from datetime import datetime, timezone

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from models import db
from security.authenticator import authenticate
from security.csrf import clear_csrf_token, issue_csrf_token
from security.errors import AuthFailure, AuthFailureReason, InvalidClaim, InvalidSession
from security.password_policy import password_strength
from security.rate_limit import check_login_rate
from security.session import refresh, session_lifetime
from utils.audit import log_event
from utils.auth_context import current_account_id, login_required
from utils.request_info import client_origin, client_user_agent

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

# Same text for wrong secret, unknown account and lockout
LOGIN_FAILED_MESSAGE = "Invalid credentials or account locked"

_PUBLIC_CLAIMS = ("sub", "role", "indexNumber", "name", "avatarRef", "iat", "exp")


def _public_claims(claims) -> dict:
    return {k: claims[k] for k in _PUBLIC_CLAIMS if k in claims}


def _session_response(session, status: int, max_age: int):
    resp = jsonify(
        token=session.token,
        token_type="Bearer",
        expires_at=session.expires_at.isoformat(),
        user=_public_claims(session.claims),
    )
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "portal_session"),
        session.token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=max(max_age, 0),
        path="/",
    )
    resp = issue_csrf_token(resp)
    return resp, status


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    identifier = data.get("identifier") or data.get("email") or ""
    password = data.get("password") or ""
    if not isinstance(identifier, str):
        identifier = ""

    try:
        allowed, retry_after = check_login_rate()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify(error="Authentication temporarily unavailable"), 503
    if not allowed:
        log_event("LOGIN_RATE_LIMIT", subject=identifier, details={"retry_after": retry_after})
        return jsonify(error="Too many login requests. Slow down.", retry_after_seconds=retry_after), 429

    result = authenticate(
        identifier,
        password,
        origin=client_origin(),
        user_agent=client_user_agent(),
    )

    if isinstance(result, AuthFailure):
        if result.reason == AuthFailureReason.UNAVAILABLE:
            return jsonify(error="Authentication temporarily unavailable"), 503

        action = "LOGIN_LOCKED" if result.reason == AuthFailureReason.LOCKED else "LOGIN_FAIL"
        log_event(
            action,
            subject=identifier,
            details={"cause": result.cause, "retry_after": result.retry_after_seconds},
        )
        return jsonify(error=LOGIN_FAILED_MESSAGE), 401

    log_event("LOGIN_SUCCESS", actor_id=int(result.subject), subject=identifier, details={"role": result.role})
    return _session_response(result, 200, int(session_lifetime().total_seconds()))


@auth_bp.post("/session/refresh")
@login_required
def refresh_session_claims():
    data = request.get_json(silent=True) or {}
    patch = data.get("patch")
    if not isinstance(patch, dict) or not patch:
        return jsonify(error="patch must be a non-empty object"), 400

    try:
        session = refresh(g.session_token, patch)
    except InvalidClaim as exc:
        return jsonify(error=str(exc)), 400
    except InvalidSession:
        return jsonify(error="Authentication required"), 401

    log_event(
        "SESSION_CLAIMS_REFRESH",
        actor_id=current_account_id(),
        details={"claims": sorted(patch)},
    )
    remaining = session.expires_at - datetime.now(timezone.utc)
    return _session_response(session, 200, int(remaining.total_seconds()))


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(_public_claims(g.session_claims)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    # Tokens are stateless: the cookie goes, the token stays valid until exp
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "portal_session")
    log_event("LOGOUT", actor_id=current_account_id())

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return clear_csrf_token(resp), 200


@auth_bp.post("/password_strength")
def check_password_strength():
    data = request.get_json(silent=True) or {}
    password = data.get("password") or ""
    return jsonify(password_strength(password)), 200
