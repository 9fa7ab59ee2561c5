"""Time-bucket and counter-key derivation.

Keys follow ``{scope}:{dimension}:{identity-or-empty}:{bucket}``. Buckets
roll over by key change alone; old keys are left to expire.

Bucket components are unpadded and the month is zero-based, so keys stay
compatible with counters written by earlier deployments
(``2024-0-1-10-30`` is 10:30 UTC on 1 January 2024).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum


class Scope(str, Enum):
    GLOBAL = "global"
    IDENTITY = "identity"


class Granularity(str, Enum):
    MINUTE = "minute"
    DAY = "day"


# Seconds a counter of each granularity lives after creation.
TTL_SECONDS: dict[Granularity, int] = {
    Granularity.MINUTE: 60,
    Granularity.DAY: 86400,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def time_bucket(granularity: Granularity, now: datetime) -> str:
    """Return the bucket string for ``now`` at the given granularity.

    Naive datetimes are treated as UTC; aware ones are converted.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)

    day = f"{now.year}-{now.month - 1}-{now.day}"
    if granularity is Granularity.DAY:
        return day
    return f"{day}-{now.hour}-{now.minute}"


def counter_key(
    scope: Scope,
    dimension: str,
    identity: str | None,
    granularity: Granularity,
    now: datetime,
) -> str:
    """Build the store key of one counter.

    Args:
        scope: Global (shared upstream) or per-identity.
        dimension: Limit dimension, e.g. ``rpm`` or ``tpd``.
        identity: Identity for per-identity counters; ignored for global ones.
        granularity: Minute or day bucket.
        now: Reference time.

    Raises:
        ValueError: If a per-identity key is requested without an identity.
    """
    if scope is Scope.IDENTITY:
        if not identity:
            raise ValueError("identity is required for identity-scoped counters")
        owner = identity
    else:
        owner = ""
    return f"{scope.value}:{dimension}:{owner}:{time_bucket(granularity, now)}"


def identity_key_pattern(identity: str) -> str:
    """Glob matching every counter owned by ``identity``."""
    return f"{Scope.IDENTITY.value}:*:{identity}:*"
