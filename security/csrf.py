"""
Double-submit CSRF check for cookie-carried sessions.

Login sets a readable ``csrf_token`` cookie next to the session cookie; a
state-changing request riding on that cookie must echo it in ``X-CSRF-Token``.
Requests that authenticate with a bearer header skip the check.
"""
import hmac
import secrets

from flask import current_app, g, jsonify, request

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
EXEMPT_PATHS = frozenset({"/auth/login", "/health"})


def issue_csrf_token(resp):
    resp.set_cookie(
        CSRF_COOKIE,
        secrets.token_urlsafe(32),
        httponly=False,  # read by client JS
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp


def clear_csrf_token(resp):
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp


def csrf_failure():
    cookie_token = request.cookies.get(CSRF_COOKIE) or ""
    header_token = request.headers.get(CSRF_HEADER) or ""
    if cookie_token and header_token and hmac.compare_digest(cookie_token, header_token):
        return None
    return jsonify(error="CSRF validation failed"), 403


def enforce_csrf():
    """before_request hook; runs after the session has been loaded."""
    if request.method not in UNSAFE_METHODS or request.path in EXEMPT_PATHS:
        return None
    if not getattr(g, "session_via_cookie", False):
        return None
    return csrf_failure()
