"""
Apple Wallet pass builder unit tests.

These tests verify:
- Archive layout (pass.json, images, manifest.json, signature)
- Manifest digests match the archived files
- Detached signature carries the signer and WWDR certificates
- Field composition for stamp and membership cards
- Failure paths (missing signing material, missing icon, invalid barcode)
"""
import hashlib
import io
import json
import zipfile
from datetime import timedelta

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs7
from wallet.models import BarcodeFormat

from rewardjar.wallet_pass.barcode_placement import BarcodeConfig, BarcodeSymbology
from rewardjar.wallet_pass.errors import AssetMissing, PlatformValidationFailed, SigningUnavailable
from rewardjar.wallet_pass.generators.apple import (
    ApplePassBuilder, ApplePassConfig, ZIP_TIMESTAMP, build_manifest, load_signing_material,
    package_archive
)
from rewardjar.wallet_pass.progress import CardKind, derive

from tests.factories import (
    PASS_TYPE_ID, TEAM_ID, make_signing_material, write_certificate_files, write_pass_assets
)

CARD_ID = '7f3c2a10-5b8e-4d3e-9c41-2f0a6d1e8b55'

FIELD_SECTIONS = ('headerFields', 'primaryFields', 'secondaryFields', 'auxiliaryFields', 'backFields')

PASSKIT_BARCODE_FORMATS = {
    'PKBarcodeFormatQR', 'PKBarcodeFormatPDF417', 'PKBarcodeFormatAztec', 'PKBarcodeFormatCode128',
}


def _entries(archive_bytes):
    with zipfile.ZipFile(io.BytesIO(archive_bytes)) as archive:
        return {info.filename: archive.read(info.filename) for info in archive.infolist()}


def _field_keys(descriptor, section):
    return [f['key'] for f in descriptor['storeCard'][section]]


def _all_field_keys(descriptor):
    store_card = descriptor['storeCard']
    return [f['key'] for section in FIELD_SECTIONS for f in store_card.get(section, [])]


# =============================================================================
# ARCHIVE
# =============================================================================

@pytest.mark.unit
class TestApplePassArchive:
    """Test the signed .pkpass archive."""

    def test_archive_contains_exactly_expected_entries(self, tmp_path, signing_material, stamp_metadata, now):
        """
        GIVEN a stamp card and an assets directory holding only icon.png
        WHEN the pass is built
        THEN the archive holds pass.json, icon.png, manifest.json and signature only
        """
        assets = write_pass_assets(tmp_path / 'only-icon', names=('icon.png',))
        builder = ApplePassBuilder(assets_path=str(assets))
        progress = derive(CardKind.STAMP, 7, 10, now=now)

        archive = builder.build(progress, stamp_metadata, CARD_ID, signing_material)

        assert sorted(_entries(archive)) == ['icon.png', 'manifest.json', 'pass.json', 'signature']

    def test_manifest_matches_archived_files(self, assets_dir, signing_material, stamp_metadata, now):
        """
        GIVEN a built pass
        WHEN the manifest is read back
        THEN it lists every file except manifest.json and signature with its SHA-1 digest
        """
        builder = ApplePassBuilder(assets_path=str(assets_dir))
        progress = derive(CardKind.STAMP, 7, 10, now=now)

        entries = _entries(builder.build(progress, stamp_metadata, CARD_ID, signing_material))
        manifest = json.loads(entries['manifest.json'])

        assert set(manifest) == set(entries) - {'manifest.json', 'signature'}
        for name, digest in manifest.items():
            assert hashlib.sha1(entries[name]).hexdigest() == digest

    def test_signature_includes_signer_and_wwdr(self, assets_dir, signing_material, certificate_chain,
                                                stamp_metadata, now):
        """
        GIVEN a built pass
        WHEN the detached signature is parsed
        THEN it carries both the signer certificate and the WWDR intermediate
        """
        builder = ApplePassBuilder(assets_path=str(assets_dir))
        progress = derive(CardKind.STAMP, 2, 10, now=now)

        entries = _entries(builder.build(progress, stamp_metadata, CARD_ID, signing_material))
        certificates = pkcs7.load_der_pkcs7_certificates(entries['signature'])

        subjects = {cert.subject for cert in certificates}
        assert certificate_chain['signer_cert'].subject in subjects
        assert certificate_chain['ca_cert'].subject in subjects

    def test_entries_have_fixed_timestamps(self, assets_dir, signing_material, stamp_metadata, now):
        builder = ApplePassBuilder(assets_path=str(assets_dir))
        progress = derive(CardKind.STAMP, 2, 10, now=now)

        archive = builder.build(progress, stamp_metadata, CARD_ID, signing_material)

        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            assert {info.date_time for info in zf.infolist()} == {ZIP_TIMESTAMP}

    def test_build_is_repeatable(self, assets_dir, signing_material, stamp_metadata, now):
        """
        GIVEN the same progress, metadata and signing material
        WHEN the pass is built twice
        THEN pass.json and manifest.json are byte-identical
        """
        builder = ApplePassBuilder(assets_path=str(assets_dir))
        progress = derive(CardKind.STAMP, 4, 10, now=now)

        first = _entries(builder.build(progress, stamp_metadata, CARD_ID, signing_material))
        second = _entries(builder.build(progress, stamp_metadata, CARD_ID, signing_material))

        assert first['pass.json'] == second['pass.json']
        assert first['manifest.json'] == second['manifest.json']

    def test_missing_signing_material(self, assets_dir, stamp_metadata, now):
        builder = ApplePassBuilder(assets_path=str(assets_dir))
        progress = derive(CardKind.STAMP, 4, 10, now=now)

        with pytest.raises(SigningUnavailable) as exc_info:
            builder.build(progress, stamp_metadata, CARD_ID, None)

        assert exc_info.value.platform == 'apple'

    def test_missing_icon(self, tmp_path, signing_material, stamp_metadata, now):
        """
        GIVEN an assets directory without icon.png
        WHEN the pass is built
        THEN AssetMissing is raised and no archive is returned
        """
        assets = write_pass_assets(tmp_path / 'no-icon', names=('logo.png',))
        builder = ApplePassBuilder(assets_path=str(assets))
        progress = derive(CardKind.STAMP, 4, 10, now=now)

        with pytest.raises(AssetMissing) as exc_info:
            builder.build(progress, stamp_metadata, CARD_ID, signing_material)

        assert exc_info.value.step == 'assets'
        assert exc_info.value.platform == 'apple'

    def test_invalid_barcode_override(self, assets_dir, signing_material, stamp_metadata, now):
        builder = ApplePassBuilder(assets_path=str(assets_dir))
        progress = derive(CardKind.STAMP, 4, 10, now=now)
        override = BarcodeConfig(BarcodeSymbology.QR_CODE, 'front', 'middle', 'small', 'center')

        with pytest.raises(PlatformValidationFailed) as exc_info:
            builder.build(progress, stamp_metadata, CARD_ID, signing_material, barcode_override=override)

        assert exc_info.value.step == 'barcode'
        assert exc_info.value.issues


# =============================================================================
# DESCRIPTOR
# =============================================================================

@pytest.mark.unit
class TestApplePassDescriptor:
    """Test pass.json composition."""

    def test_stamp_card_fields(self, signing_material, stamp_metadata, now):
        """
        GIVEN a stamp card with 7 of 10 stamps
        WHEN the descriptor is composed
        THEN identity, progress and reward fields are present
        """
        builder = ApplePassBuilder(assets_path='unused')
        progress = derive(CardKind.STAMP, 7, 10, now=now)

        descriptor = builder.build_descriptor(progress, stamp_metadata, CARD_ID, signing_material)

        assert descriptor['serialNumber'] == CARD_ID
        assert descriptor['teamIdentifier'] == TEAM_ID
        assert descriptor['passTypeIdentifier'] == PASS_TYPE_ID
        assert descriptor['backgroundColor'] == 'rgb(139, 69, 19)'

        primary = descriptor['storeCard']['primaryFields'][0]
        assert primary['key'] == 'stamps'
        assert primary['value'] == '7/10'

        secondary = {f['key']: f['value'] for f in descriptor['storeCard']['secondaryFields']}
        assert secondary == {'progress': '70%', 'remaining': '3 stamps'}

        assert _field_keys(descriptor, 'auxiliaryFields') == ['business', 'reward']
        assert 'membership_expiry_back' not in _field_keys(descriptor, 'backFields')

    def test_barcode_uses_card_id(self, signing_material, stamp_metadata, now):
        builder = ApplePassBuilder(assets_path='unused')
        progress = derive(CardKind.STAMP, 1, 10, now=now)

        descriptor = builder.build_descriptor(progress, stamp_metadata, CARD_ID, signing_material)

        assert descriptor['barcode']['message'] == CARD_ID
        assert descriptor['barcode']['format'] == BarcodeFormat.PDF417
        assert descriptor['barcode']['altText'] == f'Card ID: {CARD_ID}'
        assert descriptor['barcodes'] == [descriptor['barcode']]

    def test_membership_expiring_soon_shows_countdown(self, signing_material, membership_metadata, now):
        """
        GIVEN a membership expiring in 10 days and the default 14 day threshold
        WHEN the descriptor is composed
        THEN a countdown field appears on the front and the back under distinct keys
        """
        builder = ApplePassBuilder(assets_path='unused')
        progress = derive(CardKind.MEMBERSHIP, 5, 20, expires_at=now + timedelta(days=10), now=now)

        descriptor = builder.build_descriptor(progress, membership_metadata, CARD_ID, signing_material)

        auxiliary = {f['key']: f['value'] for f in descriptor['storeCard']['auxiliaryFields']}
        assert auxiliary['membership_expiry'] == '10 days'
        assert 'reward' not in auxiliary
        assert 'membership_expiry_back' in _field_keys(descriptor, 'backFields')
        assert 'membership_expiry' not in _field_keys(descriptor, 'backFields')
        keys = _all_field_keys(descriptor)
        assert len(keys) == len(set(keys))
        assert 'expiry_info' in _field_keys(descriptor, 'backFields')
        assert descriptor['storeCard']['primaryFields'][0]['key'] == 'sessions'

    def test_membership_far_from_expiry_has_no_countdown(self, signing_material, membership_metadata, now):
        builder = ApplePassBuilder(assets_path='unused')
        progress = derive(CardKind.MEMBERSHIP, 5, 20, expires_at=now + timedelta(days=60), now=now)

        descriptor = builder.build_descriptor(progress, membership_metadata, CARD_ID, signing_material)

        assert 'membership_expiry' not in _field_keys(descriptor, 'auxiliaryFields')
        assert 'expiry_info' in _field_keys(descriptor, 'backFields')

    def test_urgency_threshold_is_configurable(self, signing_material, membership_metadata, now):
        builder = ApplePassBuilder(assets_path='unused', urgency_days=90)
        progress = derive(CardKind.MEMBERSHIP, 5, 20, expires_at=now + timedelta(days=60), now=now)

        descriptor = builder.build_descriptor(progress, membership_metadata, CARD_ID, signing_material)

        assert 'membership_expiry' in _field_keys(descriptor, 'auxiliaryFields')

    def test_expired_membership(self, signing_material, membership_metadata, now):
        builder = ApplePassBuilder(assets_path='unused')
        progress = derive(CardKind.MEMBERSHIP, 5, 20, expires_at=now - timedelta(days=2), now=now)

        descriptor = builder.build_descriptor(progress, membership_metadata, CARD_ID, signing_material)

        auxiliary = {f['key']: f['value'] for f in descriptor['storeCard']['auxiliaryFields']}
        assert auxiliary['membership_expiry'] == 'Expired'
        assert descriptor['backgroundColor'] == 'rgb(239, 68, 68)'

    def test_web_service_requires_token(self, membership_metadata, certificate_chain, now):
        material = make_signing_material(certificate_chain, web_service_url='https://rewardjar.test/wallet')
        builder = ApplePassBuilder(assets_path='unused')
        progress = derive(CardKind.MEMBERSHIP, 5, 20, now=now)

        without_token = builder.build_descriptor(progress, membership_metadata, CARD_ID, material)
        with_token = builder.build_descriptor(
            progress, membership_metadata, CARD_ID, material, authentication_token='a' * 32
        )

        assert 'webServiceURL' not in without_token
        assert with_token['webServiceURL'] == 'https://rewardjar.test/wallet'
        assert with_token['authenticationToken'] == 'a' * 32


@pytest.mark.unit
class TestApplePassStructure:
    """Test that pass.json stays acceptable to Wallet for every layout."""

    def test_code128_override(self, signing_material, stamp_metadata, now):
        """
        GIVEN a Code 128 barcode override
        WHEN the descriptor is composed
        THEN the barcodes array carries the Code 128 format and the legacy key falls back to PDF417
        """
        builder = ApplePassBuilder(assets_path='unused')
        progress = derive(CardKind.STAMP, 2, 10, now=now)
        override = BarcodeConfig(BarcodeSymbology.CODE128, 'front', 'footer', 'medium', 'center')

        descriptor = builder.build_descriptor(progress, stamp_metadata, CARD_ID, signing_material, override)

        assert descriptor['barcodes'][0]['format'] == 'PKBarcodeFormatCode128'
        assert descriptor['barcodes'][0]['message'] == CARD_ID
        assert descriptor['barcode']['format'] == BarcodeFormat.PDF417

    @pytest.mark.parametrize('symbology', list(BarcodeSymbology))
    @pytest.mark.parametrize('card_kind,expires_in_days', [
        (CardKind.STAMP, None),
        (CardKind.MEMBERSHIP, None),
        (CardKind.MEMBERSHIP, 10),
        (CardKind.MEMBERSHIP, -3),
    ])
    def test_descriptor_is_well_formed(self, signing_material, stamp_metadata, membership_metadata, now,
                                       symbology, card_kind, expires_in_days):
        builder = ApplePassBuilder(assets_path='unused')
        expires_at = now + timedelta(days=expires_in_days) if expires_in_days is not None else None
        progress = derive(card_kind, 5, 20, expires_at=expires_at, now=now)
        metadata = membership_metadata if card_kind == CardKind.MEMBERSHIP else stamp_metadata
        override = BarcodeConfig(symbology, 'front', 'footer', 'medium', 'center')

        descriptor = builder.build_descriptor(progress, metadata, CARD_ID, signing_material, override)

        keys = _all_field_keys(descriptor)
        assert len(keys) == len(set(keys))
        assert descriptor['barcode']['format'] in PASSKIT_BARCODE_FORMATS
        assert {b['format'] for b in descriptor['barcodes']} <= PASSKIT_BARCODE_FORMATS
        json.dumps(descriptor)


# =============================================================================
# HELPERS AND CREDENTIAL LOADING
# =============================================================================

@pytest.mark.unit
class TestAppleHelpers:

    def test_build_manifest(self):
        manifest = build_manifest({'pass.json': b'{}', 'icon.png': b'\x89PNG'})

        assert manifest == {
            'pass.json': hashlib.sha1(b'{}').hexdigest(),
            'icon.png': hashlib.sha1(b'\x89PNG').hexdigest(),
        }

    def test_package_archive_sorts_entries(self):
        archive = package_archive({'signature': b's', 'icon.png': b'i', 'pass.json': b'p'})

        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            assert zf.namelist() == ['icon.png', 'pass.json', 'signature']


@pytest.mark.unit
class TestLoadSigningMaterial:
    """Test loading signing material from configured paths."""

    def _config(self, monkeypatch, paths, team_id=TEAM_ID, password=''):
        monkeypatch.setenv('WALLET_TEAM_ID', team_id)
        monkeypatch.setenv('WALLET_PASS_TYPE_ID', PASS_TYPE_ID)
        monkeypatch.setenv('WALLET_CERT_PATH', str(paths['cert']))
        monkeypatch.setenv('WALLET_KEY_PATH', str(paths['key']))
        monkeypatch.setenv('WALLET_WWDR_PATH', str(paths['wwdr']))
        monkeypatch.setenv('WALLET_KEY_PASSWORD', password)
        return ApplePassConfig()

    def test_loads_pem_files(self, monkeypatch, tmp_path, certificate_chain):
        """
        GIVEN PEM certificate, key and WWDR files with valid identifiers
        WHEN signing material is loaded
        THEN the certificates and identifiers are returned
        """
        paths = write_certificate_files(tmp_path, certificate_chain)
        config = self._config(monkeypatch, paths)

        material = load_signing_material(config)

        assert material.team_identifier == TEAM_ID
        assert material.certificate.subject == certificate_chain['signer_cert'].subject
        assert material.wwdr_certificate.subject == certificate_chain['ca_cert'].subject

    def test_loads_encrypted_key(self, monkeypatch, tmp_path, certificate_chain):
        paths = write_certificate_files(tmp_path, certificate_chain, key_password='s3cret')
        config = self._config(monkeypatch, paths, password='s3cret')

        material = load_signing_material(config)

        public = material.private_key.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        expected = certificate_chain['signer_key'].public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        assert public == expected

    def test_rejects_short_team_id(self, monkeypatch, tmp_path, certificate_chain):
        paths = write_certificate_files(tmp_path, certificate_chain)
        config = self._config(monkeypatch, paths, team_id='ABC')

        with pytest.raises(SigningUnavailable) as exc_info:
            load_signing_material(config)

        assert 'Team identifier must be 10 characters' in exc_info.value.message

    def test_missing_files(self, monkeypatch, tmp_path):
        paths = {name: tmp_path / f'missing-{name}.pem' for name in ('cert', 'key', 'wwdr')}
        config = self._config(monkeypatch, paths)

        with pytest.raises(SigningUnavailable) as exc_info:
            load_signing_material(config)

        assert exc_info.value.step == 'load_credentials'
        assert 'Certificate not found' in exc_info.value.message

    def test_rejects_malformed_certificate(self, monkeypatch, tmp_path, certificate_chain):
        paths = write_certificate_files(tmp_path, certificate_chain)
        paths['cert'].write_bytes(b'not a certificate')
        config = self._config(monkeypatch, paths)

        with pytest.raises(SigningUnavailable):
            load_signing_material(config)
