# rewardjar/wallet_pass/services/pass_service.py

"""
Unified Wallet Pass Service

Provides a high-level interface for rebuilding an issued card's pass on any
platform. Progress is derived fresh from the snapshot on every call and
signing material is resolved lazily per platform, so a platform with missing
secrets is reported as unavailable without affecting the others.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..card_data import CardSnapshot, ContentDensity, WalletPlatform, estimate_content_density
from ..errors import SigningUnavailable
from ..generators import (
    ApplePassBuilder, GooglePassBuilder, GoogleSaveResult, PwaCardRenderer,
    load_service_account, load_signing_material
)
from ..wallet_copy import DEFAULT_EXPIRY_URGENCY_DAYS

logger = logging.getLogger(__name__)


class PassService:
    """
    Unified service for pass rebuilds.

    Handles progress derivation, credential resolution and builder dispatch
    for the Apple, Google and web card platforms.
    """

    def __init__(
        self,
        apple_material_loader: Callable[[], Any] = None,
        google_account_loader: Callable[[], Any] = None,
        assets_path: str = None,
        urgency_days: int = DEFAULT_EXPIRY_URGENCY_DAYS,
        density: Optional[ContentDensity] = None
    ):
        """
        Args:
            apple_material_loader: Returns AppleSigningMaterial (defaults to env config)
            google_account_loader: Returns GoogleServiceAccount (defaults to env config)
            assets_path: Apple Wallet assets directory (defaults to WALLET_ASSETS_PATH)
            urgency_days: Expiry countdown threshold in days
            density: Force a content density instead of estimating it per card
        """
        self._apple_material_loader = apple_material_loader or load_signing_material
        self._google_account_loader = google_account_loader or load_service_account
        self._apple_material = None
        self._google_account = None
        self.assets_path = assets_path
        self.urgency_days = urgency_days
        self.density = density

    # =========================================================================
    # Credentials
    # =========================================================================

    def apple_signing_material(self):
        """Load (once) the Apple signing material; raises SigningUnavailable."""
        if self._apple_material is None:
            self._apple_material = self._resolve(self._apple_material_loader, WalletPlatform.APPLE)
        return self._apple_material

    def google_service_account(self):
        """Load (once) the Google service account; raises SigningUnavailable."""
        if self._google_account is None:
            self._google_account = self._resolve(self._google_account_loader, WalletPlatform.GOOGLE)
        return self._google_account

    @staticmethod
    def _resolve(loader, platform: WalletPlatform):
        try:
            material = loader()
        except SigningUnavailable:
            raise
        except (ValueError, OSError) as e:
            raise SigningUnavailable(str(e), platform=platform.value, step='load_credentials')
        if material is None:
            raise SigningUnavailable(
                f"{platform.value} signing credentials not configured",
                platform=platform.value, step='load_credentials'
            )
        return material

    def platform_status(self) -> Dict[str, Dict[str, Any]]:
        """
        Check which platforms can currently sign passes.

        Returns:
            Dict keyed by platform name with 'available' and 'error'
        """
        status = {}
        for platform, check in (
            (WalletPlatform.APPLE, self.apple_signing_material),
            (WalletPlatform.GOOGLE, self.google_service_account),
        ):
            try:
                check()
                status[platform.value] = {'available': True, 'error': None}
            except SigningUnavailable as e:
                status[platform.value] = {'available': False, 'error': e.message}
        status[WalletPlatform.PWA.value] = {'available': True, 'error': None}
        return status

    # =========================================================================
    # Pass Generation
    # =========================================================================

    def _density(self, snapshot: CardSnapshot) -> ContentDensity:
        return self.density or estimate_content_density(snapshot.metadata)

    def build_apple(self, snapshot: CardSnapshot, now: datetime = None,
                    authentication_token: str = None) -> bytes:
        """
        Build the .pkpass archive for an issued card.

        Returns:
            .pkpass bytes
        """
        progress = snapshot.progress(now)
        builder = ApplePassBuilder(
            assets_path=self.assets_path,
            density=self._density(snapshot),
            urgency_days=self.urgency_days,
        )
        return builder.build(
            progress, snapshot.metadata, snapshot.issued_card_id,
            self.apple_signing_material(),
            authentication_token=authentication_token,
        )

    def build_google(self, snapshot: CardSnapshot, now: datetime = None) -> GoogleSaveResult:
        """
        Build the Google Wallet loyalty object and save assertion.

        Returns:
            GoogleSaveResult
        """
        progress = snapshot.progress(now)
        builder = GooglePassBuilder(density=self._density(snapshot), urgency_days=self.urgency_days)
        return builder.build(
            progress, snapshot.metadata, snapshot.issued_card_id, self.google_service_account()
        )

    def build_pwa(self, snapshot: CardSnapshot, now: datetime = None) -> str:
        """
        Render the web card for an issued card.

        Returns:
            HTML document
        """
        progress = snapshot.progress(now)
        renderer = PwaCardRenderer(density=self._density(snapshot), urgency_days=self.urgency_days)
        return renderer.render_for_card(progress, snapshot.metadata, snapshot.issued_card_id)

    def build_for_platform(self, platform: WalletPlatform, snapshot: CardSnapshot, now: datetime = None):
        """Dispatch to the builder for ``platform``."""
        builders = {
            WalletPlatform.APPLE: self.build_apple,
            WalletPlatform.GOOGLE: self.build_google,
            WalletPlatform.PWA: self.build_pwa,
        }
        return builders[WalletPlatform(platform)](snapshot, now=now)
