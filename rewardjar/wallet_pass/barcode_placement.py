# rewardjar/wallet_pass/barcode_placement.py

"""
Barcode Placement Policy

Chooses barcode symbology, placement, position, size and alignment for a
platform and card kind, and validates a configuration against the platform
capability table. No I/O; identical inputs always produce identical configs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from .card_data import ContentDensity, WalletPlatform
from .progress import CardKind

logger = logging.getLogger(__name__)


class BarcodeSymbology(Enum):
    PDF417 = 'PDF417'
    QR_CODE = 'QR_CODE'
    AZTEC = 'AZTEC'
    CODE128 = 'CODE128'


@dataclass(frozen=True)
class BarcodeConfig:
    """Policy output describing how a barcode is laid out on one platform."""
    symbology: BarcodeSymbology
    placement: str  # 'front' | 'back'
    position: str  # 'header' | 'primary' | 'secondary' | 'auxiliary' | 'footer'
    size: str  # 'small' | 'medium' | 'large'
    alignment: str  # 'left' | 'center' | 'right'


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    issues: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PlatformCapabilities:
    supported: Tuple[BarcodeSymbology, ...]
    preferred: BarcodeSymbology
    positions: Tuple[str, ...]


# Footer is the back-of-pass barcode area Apple uses for dense passes.
PLATFORM_CAPABILITIES: Dict[WalletPlatform, PlatformCapabilities] = {
    WalletPlatform.APPLE: PlatformCapabilities(
        supported=(
            BarcodeSymbology.PDF417,
            BarcodeSymbology.QR_CODE,
            BarcodeSymbology.AZTEC,
            BarcodeSymbology.CODE128,
        ),
        preferred=BarcodeSymbology.PDF417,
        positions=('header', 'primary', 'secondary', 'auxiliary', 'footer'),
    ),
    WalletPlatform.GOOGLE: PlatformCapabilities(
        supported=(
            BarcodeSymbology.QR_CODE,
            BarcodeSymbology.PDF417,
            BarcodeSymbology.AZTEC,
            BarcodeSymbology.CODE128,
        ),
        preferred=BarcodeSymbology.QR_CODE,
        positions=('primary', 'secondary', 'auxiliary'),
    ),
    WalletPlatform.PWA: PlatformCapabilities(
        supported=(BarcodeSymbology.QR_CODE, BarcodeSymbology.PDF417),
        preferred=BarcodeSymbology.QR_CODE,
        positions=('primary', 'footer'),
    ),
}

POSITION_ALIGNMENT = {
    'header': 'center',
    'primary': 'center',
    'secondary': 'right',
    'auxiliary': 'left',
    'footer': 'center',
}

SIZE_DIMENSIONS = {
    'small': {'width': '120px', 'height': '30px'},
    'medium': {'width': '200px', 'height': '50px'},
    'large': {'width': '280px', 'height': '70px'},
}

PLATFORM_STYLES = {
    WalletPlatform.APPLE: {'border_radius': '8px', 'margin_top': '12px', 'margin_bottom': '12px'},
    WalletPlatform.GOOGLE: {'border_radius': '4px', 'margin_top': '16px', 'margin_bottom': '16px'},
    WalletPlatform.PWA: {'border_radius': '12px', 'margin_top': '20px', 'margin_bottom': '20px'},
}


def _placement(platform: WalletPlatform, card_kind: CardKind, density: ContentDensity) -> str:
    if density == ContentDensity.HIGH:
        return 'back'
    if platform == WalletPlatform.APPLE:
        if card_kind == CardKind.STAMP and density == ContentDensity.LOW:
            return 'front'
        return 'back'
    # Google and the web card have no flip interaction.
    return 'front'


def _position(platform: WalletPlatform, card_kind: CardKind, placement: str,
              density: ContentDensity) -> str:
    if platform == WalletPlatform.APPLE:
        if placement == 'back':
            return 'footer' if density == ContentDensity.HIGH else 'primary'
        return 'auxiliary' if density == ContentDensity.LOW else 'secondary'
    if platform == WalletPlatform.GOOGLE:
        if placement == 'front':
            return 'primary' if card_kind == CardKind.STAMP else 'secondary'
        return 'primary'
    return 'footer'


def _size(platform: WalletPlatform, card_kind: CardKind, density: ContentDensity) -> str:
    if density == ContentDensity.HIGH:
        return 'small'
    if platform == WalletPlatform.PWA:
        return 'large'
    if card_kind == CardKind.STAMP:
        return 'medium'
    return 'small'


def select_config(
    platform: WalletPlatform,
    card_kind: CardKind,
    density: ContentDensity = ContentDensity.MEDIUM
) -> BarcodeConfig:
    """
    Select the barcode configuration for a platform.

    Args:
        platform: Target wallet platform
        card_kind: Stamp or membership card
        density: Content density of the pass (defaults to medium)

    Returns:
        BarcodeConfig
    """
    platform = WalletPlatform(platform)
    card_kind = CardKind(card_kind)
    density = ContentDensity(density)

    placement = _placement(platform, card_kind, density)
    position = _position(platform, card_kind, placement, density)

    return BarcodeConfig(
        symbology=PLATFORM_CAPABILITIES[platform].preferred,
        placement=placement,
        position=position,
        size=_size(platform, card_kind, density),
        alignment=POSITION_ALIGNMENT[position],
    )


def select_all_platforms(
    card_kind: CardKind,
    density: ContentDensity = ContentDensity.MEDIUM
) -> Dict[WalletPlatform, BarcodeConfig]:
    """Barcode configuration for every platform, keyed by platform."""
    return {platform: select_config(platform, card_kind, density) for platform in WalletPlatform}


def validate(platform: WalletPlatform, config: BarcodeConfig) -> ValidationResult:
    """
    Validate a barcode configuration against the platform capability table.

    Args:
        platform: Target wallet platform
        config: BarcodeConfig to check (policy output or a manual override)

    Returns:
        ValidationResult with valid flag and list of issues
    """
    platform = WalletPlatform(platform)
    capabilities = PLATFORM_CAPABILITIES[platform]
    issues: List[str] = []

    if config.symbology not in capabilities.supported:
        symbology = getattr(config.symbology, 'value', config.symbology)
        issues.append(f"{symbology} not supported on {platform.value}")

    if config.position not in capabilities.positions:
        issues.append(f"Position {config.position} not available on {platform.value}")

    if issues:
        logger.debug(f"Barcode config rejected for {platform.value}: {issues}")

    return ValidationResult(valid=not issues, issues=tuple(issues))


def barcode_styles(config: BarcodeConfig, platform: WalletPlatform) -> Dict[str, str]:
    """
    Render dimensions for a barcode configuration.

    Returns:
        Dict with width, height, margin_top, margin_bottom and border_radius (CSS lengths)
    """
    styles = dict(SIZE_DIMENSIONS[config.size])
    styles.update(PLATFORM_STYLES[WalletPlatform(platform)])
    return styles
