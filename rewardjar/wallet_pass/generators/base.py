# rewardjar/wallet_pass/generators/base.py

"""
Base Pass Builder

Abstract base class for wallet pass builders. Provides the barcode selection
and validation step, canonical JSON serialization and the expiry urgency
threshold shared by the Apple, Google and web card builders.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from ..barcode_placement import BarcodeConfig, select_config, validate
from ..card_data import ContentDensity, PassMetadata, WalletPlatform
from ..errors import PlatformValidationFailed
from ..progress import ProgressModel
from ..wallet_copy import DEFAULT_EXPIRY_URGENCY_DAYS

logger = logging.getLogger(__name__)


def canonical_json(document: Any) -> bytes:
    """Serialize a document with sorted keys and compact separators."""
    return json.dumps(
        document, sort_keys=True, separators=(',', ':'), ensure_ascii=False
    ).encode('utf-8')


class BasePassBuilder(ABC):
    """
    Abstract base class for pass builders.

    Builders are pure over their inputs: they hold only configuration and
    never cache a previously built artifact.
    """

    platform: WalletPlatform = None

    def __init__(
        self,
        density: ContentDensity = ContentDensity.MEDIUM,
        urgency_days: int = DEFAULT_EXPIRY_URGENCY_DAYS
    ):
        """
        Args:
            density: Content density used for barcode placement
            urgency_days: Expiry countdown threshold in days
        """
        self.density = ContentDensity(density)
        self.urgency_days = urgency_days

    @abstractmethod
    def build(self, progress: ProgressModel, metadata: PassMetadata, *args, **kwargs) -> Any:
        """Build the platform artifact."""
        pass

    def get_platform_name(self) -> str:
        return self.platform.value

    def barcode_config(self, progress: ProgressModel, override: BarcodeConfig = None) -> BarcodeConfig:
        """
        Select (or accept an override) and validate the barcode configuration.

        Raises:
            PlatformValidationFailed: If the configuration is not valid for the platform
        """
        config = override or select_config(self.platform, progress.card_kind, self.density)
        result = validate(self.platform, config)
        if not result.valid:
            logger.error(
                f"Invalid barcode config for {self.get_platform_name()}: {'; '.join(result.issues)}"
            )
            raise PlatformValidationFailed(
                f"Barcode configuration invalid: {'; '.join(result.issues)}",
                issues=result.issues,
                platform=self.get_platform_name(),
                step='barcode',
            )
        return config

    def show_expiry_countdown(self, progress: ProgressModel) -> bool:
        return progress.is_membership and progress.expires_within(self.urgency_days)

    def common_data(self, progress: ProgressModel, metadata: PassMetadata) -> Dict[str, Any]:
        """Display values every platform renders identically."""
        return {
            'business_name': metadata.business_name,
            'card_name': metadata.card_name,
            'primary_value': progress.primary_value,
            'percent': progress.rounded_percent,
            'unit_label': progress.unit_label,
            'completed': progress.completed,
            'expired': progress.expired,
        }
