"""
Stateless session tokens.

A session is an HS256 JWT carrying ``sub``, ``role``, ``indexNumber`` (students
only), ``name``, ``avatarRef`` (when set), ``iat`` and ``exp``. Any service
holding the signing key can verify it without calling back here; there is no
revocation list, so expiry is the only server-side end of a session.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

import jwt
from flask import current_app

from models.account import Account, Role
from security.errors import ImmutableClaim, InvalidClaim, InvalidSession

REQUIRED_CLAIMS = ("sub", "role", "name", "iat", "exp")
MUTABLE_CLAIMS = frozenset({"name", "avatarRef"})


@dataclass(frozen=True)
class Session:
    token: str
    claims: Dict[str, Any] = field(default_factory=dict)

    @property
    def subject(self) -> str:
        return self.claims["sub"]

    @property
    def role(self) -> str:
        return self.claims["role"]

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.claims["exp"], tz=timezone.utc)


def _signing_key() -> str:
    key = current_app.config.get("SESSION_SIGNING_KEY") or current_app.config.get("SECRET_KEY")
    if not key:
        raise RuntimeError("SESSION_SIGNING_KEY is not configured")
    return key


def _algorithm() -> str:
    return current_app.config.get("SESSION_ALGORITHM", "HS256")


def _sign(claims: Mapping[str, Any]) -> Session:
    token = jwt.encode(dict(claims), _signing_key(), algorithm=_algorithm())
    return Session(token=token, claims=dict(claims))


def build_claims(account: Account, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    max_age = int(current_app.config.get("SESSION_MAX_AGE_SECONDS", 7 * 24 * 60 * 60))

    issued_at = int(now.timestamp())
    claims: Dict[str, Any] = {
        "sub": str(account.id),
        "role": Role(account.role).value,
        "name": account.name,
        "iat": issued_at,
        "exp": issued_at + max_age,
    }
    if account.role == Role.STUDENT.value:
        claims["indexNumber"] = account.index_number
    if account.avatar_ref:
        claims["avatarRef"] = account.avatar_ref
    return claims


def issue(account: Account, now: Optional[datetime] = None) -> Session:
    return _sign(build_claims(account, now))


def decode_session(token: str) -> Dict[str, Any]:
    """Verify signature and expiry; returns the claims."""
    if not token:
        raise InvalidSession("Missing session token")
    try:
        claims = jwt.decode(
            token,
            _signing_key(),
            algorithms=[_algorithm()],
            options={"require": list(REQUIRED_CLAIMS)},
        )
    except jwt.PyJWTError as exc:
        raise InvalidSession(str(exc)) from exc

    if claims.get("role") not in {r.value for r in Role}:
        raise InvalidSession("Unknown role claim")
    return claims


def refresh(token: str, patch: Mapping[str, Any]) -> Session:
    """
    Re-sign a live session with updated display claims. Subject, role,
    namespace claim, issued-at and expiry carry over untouched; a patch that
    names any of them is rejected.
    """
    claims = decode_session(token)

    rejected = set(patch or {}) - MUTABLE_CLAIMS
    if rejected:
        raise ImmutableClaim(rejected)

    updated = dict(claims)
    for name, value in (patch or {}).items():
        if value is None and name == "avatarRef":
            updated.pop(name, None)
        elif name == "name" and (not isinstance(value, str) or not value.strip()):
            raise InvalidClaim("name must be a non-empty string")
        elif name == "avatarRef" and (not isinstance(value, str) or len(value) > 512):
            raise InvalidClaim("avatarRef must be a string of at most 512 characters")
        else:
            updated[name] = value
    return _sign(updated)


def session_lifetime() -> timedelta:
    return timedelta(seconds=int(current_app.config.get("SESSION_MAX_AGE_SECONDS", 7 * 24 * 60 * 60)))
