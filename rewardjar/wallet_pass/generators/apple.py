# rewardjar/wallet_pass/generators/apple.py

"""
Apple Wallet Pass Builder

Builds signed .pkpass archives. Fields are modelled with the wallet library;
the manifest, the detached PKCS#7 signature and the ZIP container are produced
here so the archive holds exactly pass.json, the bundled images,
manifest.json and signature, with fixed entry timestamps.
"""

import hashlib
import json
import logging
import os
import zipfile
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7
from wallet.models import Alignment, Barcode, BarcodeFormat, Field, Pass, StoreCard

from ..barcode_placement import BarcodeConfig, BarcodeSymbology
from ..card_data import PassMetadata, WalletPlatform
from ..errors import AssetMissing, SigningUnavailable, WalletPassError
from ..progress import ProgressModel
from .. import wallet_copy as copy
from .base import BasePassBuilder, canonical_json

logger = logging.getLogger(__name__)

PKPASS_MIME_TYPE = 'application/vnd.apple.pkpass'

REQUIRED_ASSETS = ('icon.png',)
OPTIONAL_ASSETS = (
    'icon@2x.png', 'icon@3x.png',
    'logo.png', 'logo@2x.png', 'logo@3x.png',
    'strip.png', 'strip@2x.png', 'strip@3x.png',
)

# 1980-01-01 is the earliest timestamp a ZIP entry can carry.
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)

BARCODE_FORMATS = {
    BarcodeSymbology.PDF417: BarcodeFormat.PDF417,
    BarcodeSymbology.QR_CODE: BarcodeFormat.QR,
    BarcodeSymbology.AZTEC: BarcodeFormat.AZTEC,
    # Not defined on wallet.models.BarcodeFormat
    BarcodeSymbology.CODE128: 'PKBarcodeFormatCode128',
}

# The legacy top-level barcode key predates Code 128 support.
LEGACY_BARCODE_FORMATS = {
    symbology: barcode_format for symbology, barcode_format in BARCODE_FORMATS.items()
    if symbology != BarcodeSymbology.CODE128
}

ALIGNMENTS = {
    'left': Alignment.LEFT,
    'center': Alignment.CENTER,
    'right': Alignment.RIGHT,
}


class ApplePassConfig:
    """Configuration for Apple Wallet pass generation"""

    def __init__(self):
        self.team_identifier = os.getenv('WALLET_TEAM_ID', '')
        self.pass_type_identifier = os.getenv('WALLET_PASS_TYPE_ID', '')
        self.organization_name = os.getenv('WALLET_ORGANIZATION_NAME', 'RewardJar')
        self.certificate_path = os.getenv('WALLET_CERT_PATH', 'certs/certificate.pem')
        self.key_path = os.getenv('WALLET_KEY_PATH', 'certs/key.pem')
        self.wwdr_path = os.getenv('WALLET_WWDR_PATH', 'certs/wwdr.pem')
        self.key_password = os.getenv('WALLET_KEY_PASSWORD', '')
        self.web_service_url = os.getenv('WALLET_WEB_SERVICE_URL', '')
        self.assets_path = os.getenv('WALLET_ASSETS_PATH', 'assets/apple')

    def validate(self):
        """Validate that identifiers are set and all certificates exist"""
        missing = []

        if not self.team_identifier:
            missing.append("WALLET_TEAM_ID not set")
        elif len(self.team_identifier) != 10:
            missing.append(f"Team identifier must be 10 characters, got {len(self.team_identifier)}")

        if not self.pass_type_identifier:
            missing.append("WALLET_PASS_TYPE_ID not set")

        for name, path in [
            ('Certificate', self.certificate_path),
            ('Private Key', self.key_path),
            ('WWDR Certificate', self.wwdr_path)
        ]:
            if not path or not os.path.exists(path):
                missing.append(f"{name} not found at {path}")

        if missing:
            raise ValueError(f"Apple Wallet configuration errors: {'; '.join(missing)}")

        return True


@dataclass(frozen=True)
class AppleSigningMaterial:
    """Loaded signer certificate, key and WWDR intermediate plus pass identity."""
    certificate: x509.Certificate
    private_key: object
    wwdr_certificate: x509.Certificate
    team_identifier: str
    pass_type_identifier: str
    organization_name: str = 'RewardJar'
    web_service_url: str = ''


def _load_certificate(path: str, name: str) -> x509.Certificate:
    with open(path, 'rb') as f:
        data = f.read()
    try:
        return x509.load_pem_x509_certificate(data)
    except ValueError:
        try:
            return x509.load_der_x509_certificate(data)
        except ValueError as e:
            raise SigningUnavailable(
                f"{name} at {path} is not a valid certificate: {e}",
                platform=WalletPlatform.APPLE.value, step='load_credentials'
            )


def load_signing_material(config: Optional[ApplePassConfig] = None) -> AppleSigningMaterial:
    """
    Load signing material from the paths in an ApplePassConfig.

    Raises:
        SigningUnavailable: If any identifier or credential is missing or malformed
    """
    config = config or ApplePassConfig()
    try:
        config.validate()
    except ValueError as e:
        raise SigningUnavailable(str(e), platform=WalletPlatform.APPLE.value, step='load_credentials')

    certificate = _load_certificate(config.certificate_path, 'Certificate')
    wwdr_certificate = _load_certificate(config.wwdr_path, 'WWDR Certificate')

    with open(config.key_path, 'rb') as f:
        key_data = f.read()
    password = config.key_password.encode() if config.key_password else None
    try:
        private_key = serialization.load_pem_private_key(key_data, password=password)
    except (ValueError, TypeError) as e:
        raise SigningUnavailable(
            f"Private key at {config.key_path} could not be loaded: {e}",
            platform=WalletPlatform.APPLE.value, step='load_credentials'
        )

    logger.debug("Loaded Apple Wallet signing material")
    return AppleSigningMaterial(
        certificate=certificate,
        private_key=private_key,
        wwdr_certificate=wwdr_certificate,
        team_identifier=config.team_identifier,
        pass_type_identifier=config.pass_type_identifier,
        organization_name=config.organization_name,
        web_service_url=config.web_service_url,
    )


def build_manifest(files: Dict[str, bytes]) -> Dict[str, str]:
    """SHA-1 hex digest per bundled file, keyed by archive filename."""
    return {name: hashlib.sha1(content).hexdigest() for name, content in files.items()}


def sign_manifest(manifest_bytes: bytes, material: AppleSigningMaterial) -> bytes:
    """Detached DER PKCS#7 signature over the manifest bytes, chained through WWDR."""
    try:
        return (
            pkcs7.PKCS7SignatureBuilder()
            .set_data(manifest_bytes)
            .add_signer(material.certificate, material.private_key, hashes.SHA256())
            .add_certificate(material.wwdr_certificate)
            .sign(serialization.Encoding.DER, [
                pkcs7.PKCS7Options.DetachedSignature,
                pkcs7.PKCS7Options.Binary,
                pkcs7.PKCS7Options.NoAttributes,
            ])
        )
    except (TypeError, ValueError) as e:
        raise SigningUnavailable(
            f"Signing material rejected: {e}",
            platform=WalletPlatform.APPLE.value, step='sign'
        )


def package_archive(files: Dict[str, bytes]) -> bytes:
    """ZIP the given entries in sorted order with fixed timestamps."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for name in sorted(files):
            info = zipfile.ZipInfo(name, date_time=ZIP_TIMESTAMP)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            archive.writestr(info, files[name])
    return buffer.getvalue()


def validate_apple_config():
    """
    Validate Apple Wallet configuration.

    Returns:
        dict with 'configured' boolean and 'issues' list
    """
    issues = []
    config = ApplePassConfig()

    try:
        load_signing_material(config)
    except SigningUnavailable as e:
        issues.append(e.message)
    except Exception as e:
        issues.append(f"Configuration error: {e}")

    for asset in REQUIRED_ASSETS:
        if not os.path.exists(os.path.join(config.assets_path, asset)):
            issues.append(f"Required asset not found: {asset}")

    return {
        'configured': len(issues) == 0,
        'issues': issues
    }


class ApplePassBuilder(BasePassBuilder):
    """
    Builds Apple Wallet .pkpass archives for stamp and membership cards.

    Any failure aborts the build; no partial archive is ever returned.
    """

    platform = WalletPlatform.APPLE
    mime_type = PKPASS_MIME_TYPE

    def __init__(self, assets_path: str = None, **kwargs):
        """
        Initialize the Apple pass builder.

        Args:
            assets_path: Directory holding icon.png and the optional images
                (defaults to WALLET_ASSETS_PATH)
            **kwargs: density / urgency_days for BasePassBuilder
        """
        super().__init__(**kwargs)
        self.assets_path = assets_path or os.getenv('WALLET_ASSETS_PATH', 'assets/apple')

    def build(
        self,
        progress: ProgressModel,
        metadata: PassMetadata,
        issued_card_id: str,
        signing_material: Optional[AppleSigningMaterial],
        authentication_token: str = None,
        barcode_override: BarcodeConfig = None
    ) -> bytes:
        """
        Build a signed .pkpass archive.

        Args:
            progress: Freshly derived ProgressModel
            metadata: PassMetadata for the card
            issued_card_id: Issued card identifier (serial number and barcode message)
            signing_material: Loaded AppleSigningMaterial
            authentication_token: Token for pass update web service (optional)
            barcode_override: Manually chosen BarcodeConfig (optional)

        Returns:
            The .pkpass archive bytes
        """
        if signing_material is None:
            raise SigningUnavailable(
                "Apple Wallet signing material not configured",
                platform=self.get_platform_name(), step='load_credentials'
            )

        try:
            barcode_config = self.barcode_config(progress, barcode_override)
            descriptor = self.build_descriptor(
                progress, metadata, issued_card_id, signing_material,
                barcode_config, authentication_token
            )

            files = {'pass.json': canonical_json(descriptor)}
            files.update(self._load_assets())

            manifest_bytes = canonical_json(build_manifest(files))
            signature = sign_manifest(manifest_bytes, signing_material)

            files['manifest.json'] = manifest_bytes
            files['signature'] = signature
            archive = package_archive(files)

            logger.info(
                f"Generated Apple Wallet pass for card {issued_card_id} "
                f"({progress.card_kind.value}, {len(files)} entries)"
            )
            return archive

        except WalletPassError as e:
            e.platform = e.platform or self.get_platform_name()
            logger.error(f"Error generating Apple Wallet pass for {issued_card_id}: {e}")
            raise

    def build_descriptor(
        self,
        progress: ProgressModel,
        metadata: PassMetadata,
        issued_card_id: str,
        signing_material: AppleSigningMaterial,
        barcode_config: BarcodeConfig = None,
        authentication_token: str = None
    ) -> Dict:
        """
        Compose the pass.json document.

        Returns:
            pass.json as a dictionary
        """
        barcode_config = barcode_config or self.barcode_config(progress)
        pass_obj = self._create_pass_object(
            progress, metadata, issued_card_id, signing_material, barcode_config
        )

        if signing_material.web_service_url and authentication_token:
            pass_obj.webServiceURL = signing_material.web_service_url
            pass_obj.authenticationToken = authentication_token
        elif not signing_material.web_service_url:
            logger.debug("No web_service_url configured - installed passes will not pull updates")

        descriptor = json.loads(json.dumps(pass_obj.json_dict()))

        barcode = {
            'message': issued_card_id,
            'format': BARCODE_FORMATS[barcode_config.symbology],
            'messageEncoding': 'iso-8859-1',
            'altText': f"Card ID: {issued_card_id}",
        }
        # Legacy single barcode for older Wallet versions plus the barcodes array.
        legacy_format = LEGACY_BARCODE_FORMATS.get(barcode_config.symbology, BarcodeFormat.PDF417)
        descriptor['barcode'] = dict(barcode, format=legacy_format)
        descriptor['barcodes'] = [barcode]
        return descriptor

    def _create_pass_object(
        self,
        progress: ProgressModel,
        metadata: PassMetadata,
        issued_card_id: str,
        signing_material: AppleSigningMaterial,
        barcode_config: BarcodeConfig
    ) -> Pass:
        is_membership = progress.is_membership
        labels = copy.APPLE_LABELS
        card_info = StoreCard()

        card_info.headerFields.append(self._field(
            'card_name', metadata.card_name,
            labels['membership_header'] if is_membership else labels['stamp_header'],
            'center'
        ))

        card_info.primaryFields.append(self._field(
            'sessions' if is_membership else 'stamps',
            progress.primary_value,
            labels['sessions_used'] if is_membership else labels['stamps_collected'],
            'center'
        ))

        card_info.secondaryFields.append(self._field(
            'progress', f"{progress.rounded_percent}%", labels['progress'], 'left'
        ))
        card_info.secondaryFields.append(self._field(
            'remaining', copy.remaining_text(progress), labels['remaining'], 'right'
        ))

        card_info.auxiliaryFields.append(self._field(
            'business', metadata.business_name, labels['business'], 'left'
        ))
        countdown = self._countdown_field(progress)
        if countdown is not None:
            card_info.auxiliaryFields.append(countdown)
        if not is_membership:
            card_info.auxiliaryFields.append(self._field(
                'reward', metadata.reward_description, labels['reward'], 'right'
            ))

        self._add_back_fields(card_info, progress, metadata)

        pass_obj = Pass(
            card_info,
            passTypeIdentifier=signing_material.pass_type_identifier,
            organizationName=signing_material.organization_name,
            teamIdentifier=signing_material.team_identifier
        )
        pass_obj.serialNumber = issued_card_id
        pass_obj.description = f"{metadata.card_name} - {metadata.business_name}"
        pass_obj.logoText = signing_material.organization_name
        pass_obj.backgroundColor = copy.background_color(progress, metadata.brand_color)
        pass_obj.foregroundColor = copy.FOREGROUND_COLOR
        pass_obj.labelColor = copy.FOREGROUND_COLOR
        pass_obj.barcode = Barcode(
            message=issued_card_id,
            format=LEGACY_BARCODE_FORMATS.get(barcode_config.symbology, BarcodeFormat.PDF417),
            altText=f"Card ID: {issued_card_id}"
        )
        return pass_obj

    def _add_back_fields(self, card_info: StoreCard, progress: ProgressModel, metadata: PassMetadata):
        labels = copy.APPLE_LABELS
        is_membership = progress.is_membership
        instructions = copy.INSTRUCTIONS_MEMBERSHIP if is_membership else copy.INSTRUCTIONS_STAMP

        if is_membership:
            about = f"Membership with {progress.total} sessions."
            if metadata.reward_description:
                about = f"{about} {metadata.reward_description}"
        else:
            about = f"Collect {progress.total} stamps to earn: {metadata.reward_description}"

        card_info.backFields.append(Field('description', about, labels['about']))
        card_info.backFields.append(Field(
            'business_info', metadata.business_description or instructions, metadata.business_name
        ))
        card_info.backFields.append(Field('instructions', instructions, labels['how_to_use']))

        if is_membership and progress.expires_at is not None:
            card_info.backFields.append(Field(
                'expiry_info', copy.format_date(progress.expires_at), labels['expires_on']
            ))

        countdown = self._countdown_field(progress, key='membership_expiry_back')
        if countdown is not None:
            card_info.backFields.append(countdown)

        card_info.backFields.append(Field('contact', copy.SUPPORT_TEXT, labels['questions']))

    def _countdown_field(self, progress: ProgressModel, key: str = 'membership_expiry') -> Optional[Field]:
        if not self.show_expiry_countdown(progress):
            return None
        label = copy.APPLE_LABELS['membership_header'] if progress.expired else copy.APPLE_LABELS['expires']
        return self._field(key, copy.format_countdown(progress), label, 'center')

    @staticmethod
    def _field(key: str, value, label: str, alignment: str = None) -> Field:
        pass_field = Field(key, value, label)
        if alignment:
            pass_field.textAlignment = ALIGNMENTS[alignment]
        return pass_field

    def _load_assets(self) -> Dict[str, bytes]:
        """
        Read bundled images from the assets directory.

        Raises:
            AssetMissing: If a required image is not present
        """
        assets = {}
        for name in REQUIRED_ASSETS + OPTIONAL_ASSETS:
            path = os.path.join(self.assets_path, name)
            if not os.path.isfile(path):
                if name in REQUIRED_ASSETS:
                    raise AssetMissing(
                        f"Required asset not found: {path}",
                        platform=self.get_platform_name(), step='assets'
                    )
                continue
            with open(path, 'rb') as f:
                assets[name] = f.read()

        logger.debug(f"Bundling {len(assets)} Apple Wallet assets: {sorted(assets)}")
        return assets
