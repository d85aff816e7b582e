# rewardjar/wallet_pass/generators/google.py

"""
Google Wallet Pass Builder

Builds Google Wallet loyalty class/object documents and the signed
"save to wallet" JWT a client redeems to install the object.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jwt
from cryptography.hazmat.primitives import serialization

from ..barcode_placement import BarcodeConfig, BarcodeSymbology
from ..card_data import PassMetadata, WalletPlatform
from ..errors import SigningUnavailable, WalletPassError
from ..progress import CardKind, ProgressModel
from .. import wallet_copy as copy
from .base import BasePassBuilder, canonical_json

logger = logging.getLogger(__name__)

SAVE_URL_BASE = 'https://pay.google.com/gp/v/save/'
ASSERTION_LIFETIME_SECONDS = 3600

DEFAULT_CLASS_SUFFIXES = {
    CardKind.STAMP: 'rewardjar_stamp_1',
    CardKind.MEMBERSHIP: 'rewardjar_membership_1',
}

PROGRAM_NAMES = {
    CardKind.STAMP: 'Stamp Cards',
    CardKind.MEMBERSHIP: 'Membership Cards',
}

BARCODE_TYPES = {
    BarcodeSymbology.QR_CODE: 'QR_CODE',
    BarcodeSymbology.PDF417: 'PDF_417',
    BarcodeSymbology.AZTEC: 'AZTEC',
    BarcodeSymbology.CODE128: 'CODE_128',
}


class GooglePassConfig:
    """Configuration for Google Wallet pass generation"""

    def __init__(self):
        self.issuer_id = os.getenv('GOOGLE_WALLET_ISSUER_ID', '')
        self.service_account = os.getenv(
            'GOOGLE_WALLET_SERVICE_ACCOUNT',
            'certs/google-service-account.json'
        )
        self.class_suffixes = {
            CardKind.STAMP: os.getenv(
                'GOOGLE_WALLET_CLASS_SUFFIX_STAMP', DEFAULT_CLASS_SUFFIXES[CardKind.STAMP]
            ),
            CardKind.MEMBERSHIP: os.getenv(
                'GOOGLE_WALLET_CLASS_SUFFIX_MEMBERSHIP', DEFAULT_CLASS_SUFFIXES[CardKind.MEMBERSHIP]
            ),
        }

    def validate(self):
        """Validate that all required configuration exists"""
        missing = []

        if not self.issuer_id:
            missing.append("GOOGLE_WALLET_ISSUER_ID not set")
        elif '.' in self.issuer_id:
            missing.append(f"GOOGLE_WALLET_ISSUER_ID must be the numeric issuer id, got {self.issuer_id}")

        if not self.service_account:
            missing.append("GOOGLE_WALLET_SERVICE_ACCOUNT not set")
        elif not self.service_account.lstrip().startswith('{') and not os.path.exists(self.service_account):
            missing.append(f"Service account file not found at {self.service_account}")

        if missing:
            raise ValueError(f"Google Wallet configuration errors: {'; '.join(missing)}")

        return True


@dataclass(frozen=True)
class GoogleServiceAccount:
    """Service account identity used to sign save assertions."""
    client_email: str
    private_key: Any
    issuer_id: str
    class_suffixes: Dict[CardKind, str] = field(default_factory=lambda: dict(DEFAULT_CLASS_SUFFIXES))


@dataclass(frozen=True)
class GoogleSaveResult:
    class_id: str
    object_id: str
    save_assertion: str
    loyalty_object: Dict[str, Any] = field(default_factory=dict)

    @property
    def save_url(self) -> str:
        return f"{SAVE_URL_BASE}{self.save_assertion}"

    @property
    def object_json(self) -> bytes:
        return canonical_json(self.loyalty_object)

    def to_dict(self) -> Dict[str, str]:
        return {
            'classId': self.class_id,
            'objectId': self.object_id,
            'saveAssertion': self.save_assertion,
        }


def _unavailable(message: str) -> SigningUnavailable:
    return SigningUnavailable(message, platform=WalletPlatform.GOOGLE.value, step='load_credentials')


def parse_service_account(info: Dict[str, Any], issuer_id: str,
                          class_suffixes: Dict[CardKind, str] = None) -> GoogleServiceAccount:
    """
    Build a GoogleServiceAccount from parsed service-account JSON.

    Raises:
        SigningUnavailable: If client_email or private_key is missing or invalid
    """
    client_email = info.get('client_email')
    private_key_pem = info.get('private_key')
    if not client_email or not private_key_pem:
        raise _unavailable("Service account must contain client_email and private_key")
    if not issuer_id:
        raise _unavailable("GOOGLE_WALLET_ISSUER_ID not set")

    # Keys pasted into env vars often carry escaped newlines.
    private_key_pem = private_key_pem.replace('\\n', '\n').strip('\'"')
    try:
        private_key = serialization.load_pem_private_key(private_key_pem.encode(), password=None)
    except (ValueError, TypeError) as e:
        raise _unavailable(f"Service account private key is invalid: {e}")

    return GoogleServiceAccount(
        client_email=client_email,
        private_key=private_key,
        issuer_id=issuer_id,
        class_suffixes=dict(class_suffixes or DEFAULT_CLASS_SUFFIXES),
    )


def load_service_account(config: Optional[GooglePassConfig] = None) -> GoogleServiceAccount:
    """
    Load the service account named by GOOGLE_WALLET_SERVICE_ACCOUNT.

    The value is either a path to the JSON key file or the JSON itself.

    Raises:
        SigningUnavailable: If the configuration or key is missing or invalid
    """
    config = config or GooglePassConfig()
    try:
        config.validate()
    except ValueError as e:
        raise _unavailable(str(e))

    raw = config.service_account.strip()
    try:
        if raw.startswith('{'):
            info = json.loads(raw)
        else:
            with open(raw, 'r') as f:
                info = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise _unavailable(f"Service account could not be read: {e}")

    return parse_service_account(info, config.issuer_id, config.class_suffixes)


def validate_google_config():
    """
    Validate Google Wallet configuration.

    Returns:
        dict with 'configured' boolean and 'issues' list
    """
    issues = []
    try:
        load_service_account()
    except SigningUnavailable as e:
        issues.append(e.message)

    return {
        'configured': len(issues) == 0,
        'issues': issues
    }


class GooglePassBuilder(BasePassBuilder):
    """
    Builds Google Wallet loyalty objects and save assertions.

    Object documents are deterministic for identical inputs; only the
    assertion's iat/exp claims vary between builds.
    """

    platform = WalletPlatform.GOOGLE

    def build(
        self,
        progress: ProgressModel,
        metadata: PassMetadata,
        issued_card_id: str,
        service_account: Optional[GoogleServiceAccount],
        issued_at: int = None,
        barcode_override: BarcodeConfig = None
    ) -> GoogleSaveResult:
        """
        Build the loyalty object and sign the save assertion.

        Args:
            progress: Freshly derived ProgressModel
            metadata: PassMetadata for the card
            issued_card_id: Issued card identifier
            service_account: Loaded GoogleServiceAccount
            issued_at: Assertion iat in epoch seconds (defaults to now)
            barcode_override: Manually chosen BarcodeConfig (optional)

        Returns:
            GoogleSaveResult with class id, object id and assertion
        """
        if service_account is None:
            raise _unavailable("Google Wallet service account not configured")

        try:
            class_id = self.class_id(service_account, progress.card_kind)
            object_id = self.object_id(class_id, issued_card_id)
            barcode_config = self.barcode_config(progress, barcode_override)

            loyalty_object = self.build_object(
                progress, metadata, issued_card_id, class_id, object_id, barcode_config
            )
            assertion = self.sign_assertion(loyalty_object, service_account, issued_at)

            logger.info(f"Generated Google Wallet object {object_id}")
            return GoogleSaveResult(
                class_id=class_id,
                object_id=object_id,
                save_assertion=assertion,
                loyalty_object=loyalty_object,
            )

        except WalletPassError as e:
            e.platform = e.platform or self.get_platform_name()
            logger.error(f"Error generating Google Wallet pass for {issued_card_id}: {e}")
            raise

    @staticmethod
    def class_id(service_account: GoogleServiceAccount, card_kind: CardKind) -> str:
        suffix = service_account.class_suffixes.get(card_kind) or DEFAULT_CLASS_SUFFIXES[card_kind]
        return f"{service_account.issuer_id}.{suffix}"

    @staticmethod
    def object_id(class_id: str, issued_card_id: str) -> str:
        return f"{class_id}.{issued_card_id.replace('-', '')}"

    def build_object(
        self,
        progress: ProgressModel,
        metadata: PassMetadata,
        issued_card_id: str,
        class_id: str,
        object_id: str,
        barcode_config: BarcodeConfig
    ) -> Dict[str, Any]:
        """
        Compose the loyalty object document.

        Returns:
            Loyalty object as a dictionary
        """
        display_id = issued_card_id.ljust(20, '0')[:20]

        return {
            'id': object_id,
            'classId': class_id,
            'state': 'EXPIRED' if progress.expired else 'ACTIVE',
            'accountName': metadata.customer_name or 'Guest User',
            'accountId': display_id,
            'loyaltyPoints': {
                'label': progress.unit_label,
                'balance': {'string': progress.primary_value},
            },
            'barcode': {
                'type': BARCODE_TYPES[barcode_config.symbology],
                'value': issued_card_id,
                'alternateText': display_id,
            },
            'textModulesData': self._text_modules(progress, metadata),
            'hexBackgroundColor': self._hex_color(progress, metadata),
        }

    def build_class(self, service_account: GoogleServiceAccount, card_kind: CardKind,
                    metadata: PassMetadata) -> Dict[str, Any]:
        """Loyalty class document for a card kind."""
        card_kind = CardKind(card_kind)
        default = copy.MEMBERSHIP_DEFAULT_HEX if card_kind == CardKind.MEMBERSHIP else copy.STAMP_DEFAULT_HEX
        return {
            'id': self.class_id(service_account, card_kind),
            'issuerName': metadata.business_name,
            'programName': PROGRAM_NAMES[card_kind],
            'reviewStatus': 'UNDER_REVIEW',
            'hexBackgroundColor': copy.hex_to_hex(metadata.brand_color, default),
        }

    def sign_assertion(self, loyalty_object: Dict[str, Any], service_account: GoogleServiceAccount,
                       issued_at: int = None) -> str:
        """Sign the RS256 save-to-wallet assertion carrying the loyalty object."""
        iat = int(issued_at if issued_at is not None else time.time())
        claims = {
            'iss': service_account.client_email,
            'aud': 'google',
            'typ': 'savetowallet',
            'iat': iat,
            'exp': iat + ASSERTION_LIFETIME_SECONDS,
            'origins': [],
            'payload': {'loyaltyObjects': [loyalty_object]},
        }
        try:
            return jwt.encode(claims, service_account.private_key, algorithm='RS256')
        except (ValueError, TypeError, jwt.PyJWTError) as e:
            raise SigningUnavailable(
                f"Service account key rejected: {e}",
                platform=self.get_platform_name(), step='sign'
            )

    def _text_modules(self, progress: ProgressModel, metadata: PassMetadata) -> List[Dict[str, str]]:
        modules = [
            {'id': 'business', 'header': 'Business', 'body': metadata.business_name},
        ]
        if metadata.reward_description:
            modules.append({
                'id': 'reward',
                'header': 'Benefit' if progress.is_membership else 'Reward',
                'body': metadata.reward_description,
            })
        modules.append({
            'id': 'progress',
            'header': copy.APPLE_LABELS['progress'],
            'body': f"{progress.rounded_percent}% - {copy.status_line(progress)}",
        })
        if progress.expires_at is not None:
            body = copy.format_date(progress.expires_at)
            if self.show_expiry_countdown(progress):
                body = f"{body} ({copy.format_countdown(progress)})"
            modules.append({'id': 'expiry', 'header': copy.APPLE_LABELS['expires_on'], 'body': body})
        return modules

    @staticmethod
    def _hex_color(progress: ProgressModel, metadata: PassMetadata) -> str:
        if progress.is_membership:
            return copy.hex_to_hex(metadata.brand_color, copy.MEMBERSHIP_DEFAULT_HEX)
        return copy.hex_to_hex(metadata.brand_color, copy.STAMP_DEFAULT_HEX)
