import enum
from dataclasses import dataclass
from typing import List, Optional


class AuthFailureReason(str, enum.Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    LOCKED = "LOCKED"
    UNAVAILABLE = "UNAVAILABLE"


# Finer-grained causes for logs and the audit table only
CAUSE_MALFORMED = "MALFORMED"
CAUSE_ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
CAUSE_NOT_PROVISIONED = "NOT_PROVISIONED"
CAUSE_BAD_SECRET = "BAD_SECRET"
CAUSE_LOCKED = "LOCKED"
CAUSE_STORE_ERROR = "STORE_ERROR"


@dataclass(frozen=True)
class AuthFailure:
    reason: AuthFailureReason
    retry_after_seconds: Optional[int] = None
    cause: Optional[str] = None


class LedgerUnavailable(Exception):
    """The attempt ledger could not be read or locked in time."""


class CredentialError(Exception):
    code = "CREDENTIAL_ERROR"
    message = "Credential operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class AccountNotFound(CredentialError):
    code = "ACCOUNT_NOT_FOUND"
    message = "Account not found"


class AlreadyProvisioned(CredentialError):
    code = "ALREADY_PROVISIONED"
    message = "Account already has credentials; use reset instead"


class WeakSecret(CredentialError):
    code = "WEAK_SECRET"
    message = "Password does not meet policy"

    def __init__(self, errors: List[str]):
        super().__init__()
        self.errors = list(errors)


class CredentialStoreUnavailable(CredentialError):
    code = "UNAVAILABLE"
    message = "Credential store unavailable"


class SessionError(Exception):
    pass


class InvalidSession(SessionError):
    """Signature, expiry or required claims failed verification."""


class InvalidClaim(SessionError):
    """A claim patch carries a value the token cannot hold."""


class ImmutableClaim(InvalidClaim):
    def __init__(self, claims):
        self.claims = sorted(claims)
        super().__init__("Claims cannot be changed: " + ", ".join(self.claims))
