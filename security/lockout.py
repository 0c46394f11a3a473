"""
Lockout policy.

``evaluate`` maps a newest-first attempt history to an allow/deny decision.
It has no state of its own; the attempt ledger is the only input, so a
decision can be reproduced from any snapshot of it.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional


@dataclass(frozen=True)
class LockoutPolicy:
    threshold: int = 5
    base_seconds: int = 300
    max_seconds: int = 24 * 60 * 60

    @classmethod
    def from_config(cls, config: Mapping) -> "LockoutPolicy":
        return cls(
            threshold=int(config.get("LOCKOUT_THRESHOLD", cls.threshold)),
            base_seconds=int(config.get("LOCKOUT_BASE_SECONDS", cls.base_seconds)),
            max_seconds=int(config.get("LOCKOUT_MAX_SECONDS", cls.max_seconds)),
        )

    def cooldown_seconds(self, consecutive_failures: int) -> int:
        cycles = consecutive_failures // self.threshold
        if cycles <= 0:
            return 0
        # Doubling is capped before it can overflow into huge integers
        exponent = min(cycles - 1, 32)
        return min(self.base_seconds * (2 ** exponent), self.max_seconds)


@dataclass(frozen=True)
class AttemptFact:
    """Minimal attempt shape; ``LoginAttempt`` rows satisfy it too."""

    created_at: datetime
    success: bool
    blocked: bool = False


@dataclass(frozen=True)
class LockDecision:
    blocked: bool
    retry_after_seconds: Optional[int] = None
    consecutive_failures: int = 0


def count_consecutive_failures(attempts: Iterable) -> tuple:
    """
    Returns (failures, last_failure_at) for the run of failures since the
    newest success. Attempts refused by the lock itself are skipped.
    """
    failures = 0
    last_failure_at = None
    for attempt in attempts:
        if attempt.blocked:
            continue
        if attempt.success:
            break
        failures += 1
        if last_failure_at is None:
            last_failure_at = attempt.created_at
    return failures, last_failure_at


def evaluate(attempts: Iterable, now: datetime, policy: LockoutPolicy) -> LockDecision:
    failures, last_failure_at = count_consecutive_failures(attempts)

    if failures < policy.threshold or last_failure_at is None:
        return LockDecision(blocked=False, consecutive_failures=failures)

    locked_until = last_failure_at + timedelta(seconds=policy.cooldown_seconds(failures))
    if now >= locked_until:
        return LockDecision(blocked=False, consecutive_failures=failures)

    remaining = (locked_until - now).total_seconds()
    return LockDecision(
        blocked=True,
        retry_after_seconds=max(int(math.ceil(remaining)), 1),
        consecutive_failures=failures,
    )
