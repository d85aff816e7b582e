# rewardjar/wallet_pass/progress.py

"""
Progress Model

Normalizes an issued card's raw counters into the platform-neutral view every
pass builder renders from. Derivation is pure; callers derive a fresh model for
every build so a pass is never signed from a stale snapshot.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .errors import InvalidProgress


class CardKind(Enum):
    """Kinds of loyalty programs a pass can represent"""
    STAMP = 'stamp'
    MEMBERSHIP = 'membership'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    # Naive datetimes coming from the data layer are stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ProgressModel:
    """Derived, immutable progress snapshot for one issued card."""
    card_kind: CardKind
    current: int
    total: int
    percent: float
    completed: bool
    remaining: int
    as_of: datetime
    expires_at: Optional[datetime] = None
    expired: bool = False

    @property
    def is_membership(self) -> bool:
        return self.card_kind == CardKind.MEMBERSHIP

    @property
    def primary_value(self) -> str:
        return f"{self.current}/{self.total}"

    @property
    def rounded_percent(self) -> int:
        rounded = int(math.floor(self.percent + 0.5))
        # 100% only once the card is complete
        return rounded if self.completed else min(rounded, 99)

    @property
    def unit_label(self) -> str:
        return 'Sessions' if self.is_membership else 'Stamps'

    def time_until_expiry(self):
        """Return (days, hours) until expiry as of the derivation time, or None."""
        if self.expires_at is None:
            return None
        remaining = self.expires_at - self.as_of
        if remaining.total_seconds() <= 0:
            return 0, 0
        days = remaining.days
        hours = remaining.seconds // 3600
        return days, hours

    def days_until_expiry(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.expires_at is None:
            return None
        reference = _as_aware(now) if now is not None else self.as_of
        remaining = self.expires_at - reference
        return max(remaining.days, 0) if remaining.total_seconds() > 0 else 0

    def expires_within(self, days: int) -> bool:
        """True when expired or expiring within ``days`` of the derivation time."""
        if self.expires_at is None:
            return False
        return self.expired or self.days_until_expiry() <= days


def derive(
    card_kind: CardKind,
    current: int,
    total: int,
    expires_at: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> ProgressModel:
    """
    Derive a ProgressModel from raw counters.

    Args:
        card_kind: Stamp or membership card
        current: Stamps collected / sessions used
        total: Stamps required / sessions included
        expires_at: Optional expiry timestamp
        now: Reference time (defaults to the current UTC time)

    Returns:
        ProgressModel

    Raises:
        InvalidProgress: If total <= 0 or current < 0
    """
    if not isinstance(card_kind, CardKind):
        try:
            card_kind = CardKind(card_kind)
        except ValueError:
            raise InvalidProgress(f"Unknown card kind: {card_kind!r}", step='derive')

    for name, value in (('current', current), ('total', total)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidProgress(f"{name} must be an integer, got {value!r}", step='derive')

    if total <= 0:
        raise InvalidProgress(f"total must be positive, got {total}", step='derive')
    if current < 0:
        raise InvalidProgress(f"current must not be negative, got {current}", step='derive')

    as_of = _as_aware(now) if now is not None else utcnow()
    percent = max(0.0, min(current / total * 100.0, 100.0))
    completed = current >= total
    # Keep percent == 100 exactly when the card is complete.
    if not completed and percent >= 100.0:
        percent = math.nextafter(100.0, 0.0)

    expired = False
    if expires_at is not None:
        expires_at = _as_aware(expires_at)
        expired = as_of > expires_at

    return ProgressModel(
        card_kind=card_kind,
        current=current,
        total=total,
        percent=percent,
        completed=completed,
        remaining=max(total - current, 0),
        as_of=as_of,
        expires_at=expires_at,
        expired=expired,
    )
