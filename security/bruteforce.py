import threading
from contextlib import contextmanager
from datetime import timedelta

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from models import db
from models.db import utcnow
from models.login_attempt import LoginAttempt
from models.login_guard import LoginGuard
from security.errors import LedgerUnavailable
from security.lockout import LockDecision, LockoutPolicy, evaluate
from utils.logging import get_logger

logger = get_logger(__name__)


class _KeyedLocks:
    """Process-local lock per identifier key; entries vanish when unused."""

    def __init__(self):
        self._mutex = threading.Lock()
        self._locks = {}
        self._users = {}

    @contextmanager
    def hold(self, key: str, timeout: float):
        with self._mutex:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1

        acquired = lock.acquire(timeout=timeout)
        try:
            if not acquired:
                raise LedgerUnavailable(f"Timed out waiting for attempt guard on {key!r}")
            yield
        finally:
            if acquired:
                lock.release()
            with self._mutex:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    self._locks.pop(key, None)


_local_locks = _KeyedLocks()


def _timeout_seconds() -> float:
    return float(current_app.config.get("LEDGER_TIMEOUT_SECONDS", 5))


def _apply_statement_timeout():
    if db.engine.dialect.name == "postgresql":
        ms = int(_timeout_seconds() * 1000)
        db.session.execute(text(f"SET LOCAL statement_timeout = {ms}"))


def _lock_guard_row(key: str) -> LoginGuard:
    guard = (
        LoginGuard.query
        .filter_by(identifier_key=key)
        .with_for_update()
        .first()
    )
    if guard:
        return guard

    guard = LoginGuard(identifier_key=key)
    db.session.add(guard)
    try:
        db.session.flush()
    except IntegrityError:
        # another process created it first
        db.session.rollback()
        _apply_statement_timeout()
        guard = (
            LoginGuard.query
            .filter_by(identifier_key=key)
            .with_for_update()
            .one()
        )
    return guard


@contextmanager
def identifier_guard(key: str):
    """
    Serialize lock-check, verification and ledger append for one identifier.
    Holds a process-local lock and, inside the current transaction, a row
    lock on the identifier's LoginGuard. The caller commits or rolls back
    before leaving the block.
    """
    with _local_locks.hold(key, _timeout_seconds()):
        _apply_statement_timeout()
        guard = _lock_guard_row(key)
        yield guard


def lockout_policy() -> LockoutPolicy:
    return LockoutPolicy.from_config(current_app.config)


def recent_attempts(key: str, now=None):
    """Trailing ledger rows for an identifier key, newest first."""
    now = now or utcnow()
    window = int(current_app.config.get("LOCKOUT_WINDOW_SECONDS", 7 * 24 * 60 * 60))
    limit = int(current_app.config.get("LOCKOUT_HISTORY_LIMIT", 500))

    return (
        LoginAttempt.query
        .filter(LoginAttempt.identifier_key == key)
        .filter(LoginAttempt.created_at >= now - timedelta(seconds=window))
        .order_by(LoginAttempt.created_at.desc(), LoginAttempt.id.desc())
        .limit(limit)
        .all()
    )


def check_lock(identifier, origin: str, now=None) -> LockDecision:
    """
    Read-only lockout check. Origin is logged but does not split the count:
    failures from every origin add up against the identifier.
    """
    now = now or utcnow()
    decision = evaluate(recent_attempts(identifier.key, now), now, lockout_policy())
    if decision.blocked:
        logger.info(
            "lockout_active",
            identifier=identifier.key,
            origin=origin,
            consecutive_failures=decision.consecutive_failures,
            retry_after_seconds=decision.retry_after_seconds,
        )
    return decision


def record_attempt(identifier, raw_identifier: str, origin: str, user_agent, success: bool,
                   blocked: bool = False, account_id=None, now=None) -> LoginAttempt:
    """Append one ledger row to the current transaction (caller commits)."""
    row = LoginAttempt(
        identifier=(raw_identifier or "")[:255],
        identifier_key=identifier.key,
        namespace=identifier.namespace,
        account_id=account_id,
        success=success,
        blocked=blocked,
        origin=(origin or "unknown")[:64],
        user_agent=user_agent[:255] if user_agent else None,
        created_at=now or utcnow(),
    )
    db.session.add(row)
    return row
