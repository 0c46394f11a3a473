from functools import wraps

from flask import g, jsonify

from models.account import Role


def current_role():
    claims = getattr(g, "session_claims", None)
    return claims.get("role") if claims else None


def require_roles(*roles):
    """
    Usage: @require_roles(Role.ADMIN)

    401 without a session, 403 when the session's role claim is not listed.
    """
    allowed = frozenset(Role(r).value for r in roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            role = current_role()
            if role is None:
                return jsonify(error="Authentication required"), 401
            if role not in allowed:
                return jsonify(error="Forbidden"), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
