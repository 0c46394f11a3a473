"""
Administrator-side credential issuance.

The caller is trusted to have checked the ADMIN role already. Both operations
write the new hash and its CredentialIssuance row in a single transaction and
hand back the plaintext secret exactly once.
"""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.account import Account
from models.credential_issuance import (
    KIND_PROVISION,
    KIND_RESET,
    SOURCE_EXPLICIT,
    SOURCE_GENERATED,
    CredentialIssuance,
)
from models.db import utcnow
from security.errors import AccountNotFound, AlreadyProvisioned, CredentialStoreUnavailable, WeakSecret
from security.password import hash_password
from security.password_policy import generate_secret, validate_password
from utils.logging import get_logger

logger = get_logger(__name__)

STATUS_NEEDS_CREDENTIALS = "needs_credentials"
STATUS_HAS_CREDENTIALS = "has_credentials"
STATUS_ALL = "all"


@dataclass(frozen=True)
class CredentialDelivery:
    """Payload for out-of-band delivery. Holds the only copy of the secret."""

    secret: str
    account_email: Optional[str]
    account_identifier: Optional[str]
    account_name: str
    issuance_id: int
    kind: str

    def __repr__(self):
        return (
            f"CredentialDelivery(account_identifier={self.account_identifier!r}, "
            f"kind={self.kind!r}, issuance_id={self.issuance_id!r})"
        )


def _choose_secret(explicit_secret: Optional[str]):
    if explicit_secret is None:
        return generate_secret(), SOURCE_GENERATED

    valid, errors = validate_password(explicit_secret)
    if not valid:
        raise WeakSecret(errors)
    return explicit_secret, SOURCE_EXPLICIT


# accounts.id is a signed 64-bit integer on Postgres
MAX_ACCOUNT_ID = 2 ** 63 - 1


def _coerce_account_id(value) -> Optional[int]:
    """Positive integer ids only; digit strings are accepted, bools and floats are not."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            return None
        value = int(value)
    if not isinstance(value, int) or not 0 < value <= MAX_ACCOUNT_ID:
        return None
    return value


def _load_account(account_id) -> Account:
    account_id = _coerce_account_id(account_id)
    if account_id is None:
        raise AccountNotFound()
    try:
        account = db.session.get(Account, account_id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise CredentialStoreUnavailable() from exc
    if account is None:
        raise AccountNotFound()
    return account


def _delivery(account: Account, secret: str, issuance: CredentialIssuance) -> CredentialDelivery:
    return CredentialDelivery(
        secret=secret,
        account_email=account.email,
        account_identifier=account.login_identifier,
        account_name=account.name,
        issuance_id=issuance.id,
        kind=issuance.kind,
    )


def _write(account: Account, secret: str, source: str, kind: str,
           issued_by, notes, only_if_unset: bool) -> CredentialDelivery:
    account_id = account.id
    password_hash = hash_password(secret)
    stmt = (
        update(Account)
        .where(Account.id == account_id)
        .values(password_hash=password_hash, updated_at=utcnow())
    )
    if only_if_unset:
        # compare-and-set: a concurrent provision wins at most once
        stmt = stmt.where(Account.password_hash.is_(None))

    try:
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            db.session.rollback()
            raise AlreadyProvisioned()

        issuance = CredentialIssuance(
            account_id=account_id,
            issued_by=issued_by,
            kind=kind,
            secret_source=source,
            notes=notes,
        )
        db.session.add(issuance)
        db.session.flush()
        delivery = _delivery(account, secret, issuance)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("credential_write_failed", account_id=account_id, kind=kind, error=exc.__class__.__name__)
        raise CredentialStoreUnavailable() from exc

    return delivery


def provision(target_account_id, explicit_secret: Optional[str] = None,
              issued_by=None, notes: Optional[str] = None) -> CredentialDelivery:
    """
    First-time credentials for an account that has none. Re-provisioning is
    refused with AlreadyProvisioned; use reset_credentials for that.
    """
    account = _load_account(target_account_id)
    account_id = account.id
    if account.password_hash is not None:
        logger.info("provision_rejected", account_id=account_id, cause=AlreadyProvisioned.code, issued_by=issued_by)
        raise AlreadyProvisioned()

    secret, source = _choose_secret(explicit_secret)
    try:
        delivery = _write(account, secret, source, KIND_PROVISION, issued_by, notes, only_if_unset=True)
    except AlreadyProvisioned:
        logger.info("provision_rejected", account_id=account_id, cause=AlreadyProvisioned.code, issued_by=issued_by)
        raise

    logger.info("credentials_provisioned", account_id=account_id, source=source, issued_by=issued_by)
    return delivery


def reset_credentials(target_account_id, explicit_secret: Optional[str] = None,
                      issued_by=None, notes: Optional[str] = None) -> CredentialDelivery:
    """Replace the secret of any existing account, provisioned or not."""
    account = _load_account(target_account_id)
    account_id = account.id
    secret, source = _choose_secret(explicit_secret)
    delivery = _write(account, secret, source, KIND_RESET, issued_by, notes, only_if_unset=False)

    logger.info("credentials_reset", account_id=account_id, source=source, issued_by=issued_by)
    return delivery


def list_accounts_by_credential_status(status: str = STATUS_ALL, role: Optional[str] = None,
                                       limit: int = 200) -> List[Account]:
    q = Account.query
    if status == STATUS_NEEDS_CREDENTIALS:
        q = q.filter(Account.password_hash.is_(None))
    elif status == STATUS_HAS_CREDENTIALS:
        q = q.filter(Account.password_hash.isnot(None))
    elif status != STATUS_ALL:
        raise ValueError(f"Unknown credential status {status!r}")

    if role:
        q = q.filter(Account.role == role)

    return q.order_by(Account.created_at.desc(), Account.id.desc()).limit(limit).all()
