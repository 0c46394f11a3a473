from functools import wraps

from flask import current_app, g, jsonify, request

from security.errors import InvalidSession
from security.session import decode_session


def session_token_from_request():
    """Returns (token, via_cookie). A bearer header wins over the cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None, False
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "portal_session")
    return request.cookies.get(cookie_name), True


def load_current_session():
    g.session_token = None
    g.session_claims = None
    g.session_via_cookie = False

    token, via_cookie = session_token_from_request()
    if not token:
        return
    try:
        claims = decode_session(token)
    except InvalidSession:
        return
    g.session_token = token
    g.session_claims = claims
    g.session_via_cookie = via_cookie


def current_account_id():
    claims = getattr(g, "session_claims", None)
    return int(claims["sub"]) if claims else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "session_claims", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
