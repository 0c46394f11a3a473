from functools import lru_cache

import bcrypt
from flask import current_app

_DEFAULT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes and newer releases reject longer input
BCRYPT_MAX_BYTES = 72


def _rounds() -> int:
    try:
        return int(current_app.config.get("BCRYPT_ROUNDS", _DEFAULT_ROUNDS))
    except RuntimeError:  # outside app context
        return _DEFAULT_ROUNDS


def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or len(plain_password) == 0:
        raise ValueError("Password must be a non-empty string")

    # bcrypt expects bytes
    salt = bcrypt.gensalt(rounds=_rounds())
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")

def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    candidate = plain_password.encode("utf-8")
    try:
        if len(candidate) > BCRYPT_MAX_BYTES:
            # no stored secret is this long; still pay for the comparison
            bcrypt.checkpw(candidate[:BCRYPT_MAX_BYTES], password_hash.encode("utf-8"))
            return False
        return bcrypt.checkpw(candidate, password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return dummy_verify(plain_password)


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> bytes:
    return bcrypt.hashpw(b"portal-auth-dummy-secret", bcrypt.gensalt(rounds=rounds))


def dummy_verify(plain_password: str) -> bool:
    """
    Spend the same bcrypt work as a real comparison when there is no hash to
    compare against, so unknown and unprovisioned accounts answer in the same
    time as a wrong password. Always returns False.
    """
    candidate = (plain_password or "").encode("utf-8")[:BCRYPT_MAX_BYTES]
    bcrypt.checkpw(candidate, _dummy_hash(_rounds()))
    return False
