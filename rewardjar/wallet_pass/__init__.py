# rewardjar/wallet_pass/__init__.py

"""
Wallet Pass Module for RewardJar

Builds Apple Wallet archives, Google Wallet save links and the web card for
issued stamp and membership cards, and keeps installed passes current through
the wallet update queue.
"""

from .card_data import (
    CardSnapshot, CardSnapshotSource, ContentDensity, PassMetadata, WalletPlatform,
    estimate_content_density
)
from .errors import (
    AssetMissing, InvalidProgress, PlatformValidationFailed, QueueRecordTerminal,
    SigningUnavailable, WalletPassError
)
from .progress import CardKind, ProgressModel, derive

__all__ = [
    'CardSnapshot',
    'CardSnapshotSource',
    'ContentDensity',
    'PassMetadata',
    'WalletPlatform',
    'estimate_content_density',
    'AssetMissing',
    'InvalidProgress',
    'PlatformValidationFailed',
    'QueueRecordTerminal',
    'SigningUnavailable',
    'WalletPassError',
    'CardKind',
    'ProgressModel',
    'derive',
]
