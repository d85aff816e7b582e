# rewardjar/wallet_pass/card_data.py

"""
Card Data

Normalized hand-off types between the external card data layer and the pass
builders. The data layer adapts its own rows into a CardSnapshot; nothing in
this package inspects raw query results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, FrozenSet, Protocol

from .progress import CardKind, ProgressModel, derive


class WalletPlatform(Enum):
    """Delivery targets for an issued card"""
    APPLE = 'apple'
    GOOGLE = 'google'
    PWA = 'pwa'


class ContentDensity(Enum):
    """Coarse measure of how much text a pass carries"""
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


@dataclass(frozen=True)
class PassMetadata:
    """Business and card display information, read-only at build time."""
    business_name: str
    card_name: str
    reward_description: str = ''
    brand_color: Optional[str] = None
    icon_emoji: Optional[str] = None
    business_description: Optional[str] = None
    customer_name: Optional[str] = None
    membership_cost: Optional[float] = None


@dataclass(frozen=True)
class CardSnapshot:
    """
    Current state of one issued card as seen by the data layer.

    Progress is never stored here in derived form; call ``progress()`` for
    every build.
    """
    issued_card_id: str
    card_kind: CardKind
    current: int
    total: int
    metadata: PassMetadata
    expires_at: Optional[datetime] = None
    platforms: FrozenSet[WalletPlatform] = field(default_factory=frozenset)

    def progress(self, now: Optional[datetime] = None) -> ProgressModel:
        return derive(self.card_kind, self.current, self.total, self.expires_at, now=now)


class CardSnapshotSource(Protocol):
    """Lookup the update queue processor uses to load a card's current state."""

    def get_snapshot(self, issued_card_id: str) -> Optional[CardSnapshot]:
        ...


def estimate_content_density(metadata: PassMetadata) -> ContentDensity:
    """
    Classify the amount of descriptive text a pass will carry.

    Args:
        metadata: PassMetadata for the card

    Returns:
        ContentDensity
    """
    text_length = sum(
        len(value or '') for value in (
            metadata.business_name,
            metadata.card_name,
            metadata.reward_description,
            metadata.business_description,
        )
    )
    if text_length > 240:
        return ContentDensity.HIGH
    if text_length > 80:
        return ContentDensity.MEDIUM
    return ContentDensity.LOW
