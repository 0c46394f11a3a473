"""
Password policy: validation, strength scoring and secret generation.

Rules come from the PASSWORD_* config keys when an app context is active and
from the ``PasswordPolicy`` defaults otherwise.
"""
import re
import secrets
import string
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from flask import current_app

from security.password import BCRYPT_MAX_BYTES

# (config flag, pattern, message)
_CHARACTER_RULES = (
    ("PASSWORD_REQUIRE_UPPER", re.compile(r"[A-Z]"), "Password must include at least 1 uppercase letter"),
    ("PASSWORD_REQUIRE_LOWER", re.compile(r"[a-z]"), "Password must include at least 1 lowercase letter"),
    ("PASSWORD_REQUIRE_DIGIT", re.compile(r"\d"), "Password must include at least 1 number"),
    ("PASSWORD_REQUIRE_SYMBOL", re.compile(r"[^A-Za-z0-9]"), "Password must include at least 1 symbol"),
)

# Alphabet for generated secrets. No quotes, backslash or space, so the
# secret survives copy/paste out of an email body.
SECRET_SYMBOLS = "!#$%&()*+-.:;<=>?@[]^_{|}~"
_SECRET_CLASSES = (string.ascii_uppercase, string.ascii_lowercase, string.digits, SECRET_SYMBOLS)


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 12
    max_length: int = 72
    required: Tuple[str, ...] = tuple(flag for flag, _, _ in _CHARACTER_RULES)
    generated_length: int = 16

    @classmethod
    def from_config(cls, config: Mapping) -> "PasswordPolicy":
        return cls(
            min_length=int(config.get("PASSWORD_MIN_LEN", cls.min_length)),
            max_length=int(config.get("PASSWORD_MAX_LEN", cls.max_length)),
            required=tuple(flag for flag, _, _ in _CHARACTER_RULES if config.get(flag, True)),
            generated_length=int(config.get("GENERATED_SECRET_LENGTH", cls.generated_length)),
        )

    @property
    def rules(self):
        return [(pattern, message) for flag, pattern, message in _CHARACTER_RULES if flag in self.required]


def current_policy() -> PasswordPolicy:
    try:
        return PasswordPolicy.from_config(current_app.config)
    except RuntimeError:  # outside app context
        return PasswordPolicy()


def validate_password(pw: str, policy: Optional[PasswordPolicy] = None) -> Tuple[bool, List[str]]:
    if not isinstance(pw, str):
        return False, ["Password must be a string"]
    policy = policy or current_policy()

    errors: List[str] = []
    if len(pw) < policy.min_length:
        errors.append(f"Password must be at least {policy.min_length} characters")
    if len(pw) > policy.max_length:
        errors.append(f"Password must be at most {policy.max_length} characters")
    elif len(pw.encode("utf-8")) > BCRYPT_MAX_BYTES:
        errors.append(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")

    errors.extend(message for pattern, message in policy.rules if not pattern.search(pw))
    return not errors, errors


def password_strength(pw: str, policy: Optional[PasswordPolicy] = None) -> dict:
    """Score 0-4 plus feedback; ``valid`` is the same verdict validate_password gives."""
    if not isinstance(pw, str):
        return {"score": 0, "valid": False, "feedback": ["Password must be a string"]}
    policy = policy or current_policy()

    valid, errors = validate_password(pw, policy)
    rules = policy.rules
    variety = sum(1 for pattern, _ in rules if pattern.search(pw))
    full_variety = max(1, len(rules))
    long_enough = len(pw) >= policy.min_length

    score = sum((
        long_enough,
        len(pw) >= policy.min_length + 4,
        variety >= min(3, full_variety),
        long_enough and variety == full_variety,
    ))

    if not valid:
        feedback = errors
    else:
        feedback = []
        if len(pw) < policy.min_length + 4:
            feedback.append("Use a longer passphrase for extra strength")
        if variety < full_variety:
            feedback.append("Add more character variety to strengthen the password")

    return {"score": min(score, 4), "valid": valid, "feedback": feedback}


def generate_secret(length: Optional[int] = None, policy: Optional[PasswordPolicy] = None) -> str:
    """
    Random secret with at least one character from each class, drawn from
    the OS CSPRNG. Never shorter than the policy minimum.
    """
    policy = policy or current_policy()
    length = max(length or policy.generated_length, policy.min_length, len(_SECRET_CLASSES))

    rng = secrets.SystemRandom()
    alphabet = "".join(_SECRET_CLASSES)
    chars = [rng.choice(cls) for cls in _SECRET_CLASSES]
    chars.extend(rng.choice(alphabet) for _ in range(length - len(chars)))
    rng.shuffle(chars)
    return "".join(chars)
