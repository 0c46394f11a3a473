"""
Credential verification: the single entry point behind the login route.

``authenticate`` never raises for bad input or bad credentials. Every outcome
is an ``AuthFailure`` or a ``Session``; store failures become
``AuthFailure(UNAVAILABLE)`` and never fall through to a grant.
"""
from typing import Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.account import Account, Role
from models.db import utcnow
from security.bruteforce import check_lock, identifier_guard, record_attempt
from security.errors import (
    CAUSE_ACCOUNT_NOT_FOUND,
    CAUSE_BAD_SECRET,
    CAUSE_LOCKED,
    CAUSE_MALFORMED,
    CAUSE_NOT_PROVISIONED,
    CAUSE_STORE_ERROR,
    AuthFailure,
    AuthFailureReason,
    LedgerUnavailable,
)
from security.identifiers import Identifier, IndexNumber, InvalidIdentifier, parse_identifier
from security.password import dummy_verify, verify_password
from security.session import Session, issue
from utils.logging import get_logger

logger = get_logger(__name__)


def resolve_account(identifier: Identifier) -> Optional[Account]:
    """Look up an account inside the identifier's own namespace only."""
    if isinstance(identifier, IndexNumber):
        return (
            Account.query
            .filter(Account.index_number == identifier.key)
            .filter(Account.role == Role.STUDENT.value)
            .first()
        )
    return (
        Account.query
        .filter(Account.email == identifier.key)
        .filter(Account.role != Role.STUDENT.value)
        .first()
    )


def _verify(identifier: Identifier, secret: str) -> Tuple[Optional[Account], bool, Optional[str]]:
    account = resolve_account(identifier)
    if not secret:
        dummy_verify(secret)
        return account, False, CAUSE_MALFORMED
    if account is None:
        dummy_verify(secret)
        return None, False, CAUSE_ACCOUNT_NOT_FOUND
    if account.password_hash is None:
        dummy_verify(secret)
        return account, False, CAUSE_NOT_PROVISIONED
    if not verify_password(secret, account.password_hash):
        return account, False, CAUSE_BAD_SECRET
    return account, True, None


def authenticate(identifier: str, secret: str, origin: str = "unknown",
                 user_agent: Optional[str] = None, now=None) -> Union[Session, AuthFailure]:
    origin = origin or "unknown"
    if not isinstance(secret, str):
        secret = ""
    try:
        parsed = parse_identifier(identifier)
    except InvalidIdentifier:
        logger.info("login_failed", cause=CAUSE_MALFORMED, origin=origin)
        return AuthFailure(AuthFailureReason.INVALID_CREDENTIALS, cause=CAUSE_MALFORMED)

    now = now or utcnow()
    session = None
    try:
        with identifier_guard(parsed.key) as guard:
            guard.last_attempt_at = now

            decision = check_lock(parsed, origin, now)
            if decision.blocked:
                record_attempt(parsed, identifier, origin, user_agent, success=False, blocked=True, now=now)
                db.session.commit()
                logger.warning(
                    "login_locked",
                    identifier=parsed.key,
                    origin=origin,
                    retry_after_seconds=decision.retry_after_seconds,
                )
                return AuthFailure(
                    AuthFailureReason.LOCKED,
                    retry_after_seconds=decision.retry_after_seconds,
                    cause=CAUSE_LOCKED,
                )

            account, verified, cause = _verify(parsed, secret)
            record_attempt(
                parsed, identifier, origin, user_agent,
                success=verified,
                account_id=account.id if account else None,
                now=now,
            )
            if verified:
                # Signed before commit so nothing below can touch the store
                session = issue(account, now)
            db.session.commit()
    except (SQLAlchemyError, LedgerUnavailable) as exc:
        db.session.rollback()
        logger.error(
            "login_unavailable",
            identifier=parsed.key,
            origin=origin,
            error=exc.__class__.__name__,
        )
        return AuthFailure(AuthFailureReason.UNAVAILABLE, cause=CAUSE_STORE_ERROR)

    if session is None:
        logger.info(
            "login_failed",
            identifier=parsed.key,
            namespace=parsed.namespace,
            origin=origin,
            cause=cause,
        )
        return AuthFailure(AuthFailureReason.INVALID_CREDENTIALS, cause=cause)

    logger.info(
        "login_succeeded",
        identifier=parsed.key,
        origin=origin,
        account_id=session.subject,
        role=session.role,
    )
    return session
