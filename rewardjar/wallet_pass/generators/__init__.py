# rewardjar/wallet_pass/generators/__init__.py

"""
Wallet Pass Builders

This package contains builders for the three delivery platforms:
- Apple Wallet (.pkpass archives with a detached PKCS#7 signature)
- Google Wallet (loyalty objects with a service-account signed JWT)
- Web card (self-contained HTML fallback)

All three render from the same ProgressModel and PassMetadata, so the
numbers and wording match across platforms.
"""

from .base import BasePassBuilder, canonical_json
from .apple import (
    ApplePassBuilder, ApplePassConfig, AppleSigningMaterial, PKPASS_MIME_TYPE,
    load_signing_material, validate_apple_config
)
from .google import (
    GooglePassBuilder, GooglePassConfig, GoogleSaveResult, GoogleServiceAccount,
    load_service_account, validate_google_config
)
from .pwa import PwaCardRenderer, make_scannable_image, render

__all__ = [
    'BasePassBuilder',
    'canonical_json',
    'ApplePassBuilder',
    'ApplePassConfig',
    'AppleSigningMaterial',
    'PKPASS_MIME_TYPE',
    'load_signing_material',
    'validate_apple_config',
    'GooglePassBuilder',
    'GooglePassConfig',
    'GoogleSaveResult',
    'GoogleServiceAccount',
    'load_service_account',
    'validate_google_config',
    'PwaCardRenderer',
    'make_scannable_image',
    'render',
]
