"""
Google Wallet pass builder unit tests.
"""
import json
from dataclasses import replace
from datetime import timedelta

import jwt
import pytest

from rewardjar.wallet_pass.errors import SigningUnavailable
from rewardjar.wallet_pass.generators.google import (
    ASSERTION_LIFETIME_SECONDS, SAVE_URL_BASE, GooglePassBuilder, GooglePassConfig,
    load_service_account, parse_service_account
)
from rewardjar.wallet_pass.progress import CardKind, derive

from tests.factories import ISSUER_ID, make_service_account_info, write_service_account_file

CARD_ID = '7f3c2a10-5b8e-4d3e-9c41-2f0a6d1e8b55'
ISSUED_AT = 1748779200


def _decode(assertion, private_key):
    return jwt.decode(
        assertion,
        private_key.public_key(),
        algorithms=['RS256'],
        audience='google',
        options={'verify_exp': False},
    )


@pytest.mark.unit
class TestGoogleSaveAssertion:
    """Test the signed save-to-wallet assertion."""

    def test_assertion_claims(self, google_account, stamp_metadata, now):
        """
        GIVEN a stamp card and a service account
        WHEN the Google pass is built
        THEN the assertion verifies with the account key and carries the loyalty object
        """
        account, private_key = google_account
        progress = derive(CardKind.STAMP, 3, 10, now=now)

        result = GooglePassBuilder().build(progress, stamp_metadata, CARD_ID, account, issued_at=ISSUED_AT)
        claims = _decode(result.save_assertion, private_key)

        assert claims['iss'] == account.client_email
        assert claims['typ'] == 'savetowallet'
        assert claims['iat'] == ISSUED_AT
        assert claims['exp'] == ISSUED_AT + ASSERTION_LIFETIME_SECONDS
        assert claims['origins'] == []
        assert claims['payload']['loyaltyObjects'] == [result.loyalty_object]

    def test_identifiers(self, service_account, stamp_metadata, now):
        progress = derive(CardKind.STAMP, 3, 10, now=now)

        result = GooglePassBuilder().build(progress, stamp_metadata, CARD_ID, service_account, issued_at=ISSUED_AT)

        assert result.class_id == f'{ISSUER_ID}.rewardjar_stamp_1'
        assert result.object_id == f'{ISSUER_ID}.rewardjar_stamp_1.7f3c2a105b8e4d3e9c412f0a6d1e8b55'
        assert result.save_url == f'{SAVE_URL_BASE}{result.save_assertion}'
        assert result.to_dict() == {
            'classId': result.class_id,
            'objectId': result.object_id,
            'saveAssertion': result.save_assertion,
        }

    def test_object_is_deterministic(self, service_account, stamp_metadata, now):
        """
        GIVEN identical inputs
        WHEN the Google pass is built at different times
        THEN the loyalty object serializes to identical bytes
        """
        progress = derive(CardKind.STAMP, 3, 10, now=now)
        builder = GooglePassBuilder()

        first = builder.build(progress, stamp_metadata, CARD_ID, service_account, issued_at=ISSUED_AT)
        second = builder.build(progress, stamp_metadata, CARD_ID, service_account, issued_at=ISSUED_AT + 60)

        assert first.object_json == second.object_json

    def test_missing_service_account(self, stamp_metadata, now):
        progress = derive(CardKind.STAMP, 3, 10, now=now)

        with pytest.raises(SigningUnavailable) as exc_info:
            GooglePassBuilder().build(progress, stamp_metadata, CARD_ID, None)

        assert exc_info.value.platform == 'google'


@pytest.mark.unit
class TestGoogleLoyaltyObject:
    """Test loyalty object composition."""

    def test_stamp_object(self, service_account, stamp_metadata, now):
        progress = derive(CardKind.STAMP, 7, 10, now=now)

        obj = GooglePassBuilder().build(progress, stamp_metadata, CARD_ID, service_account).loyalty_object

        assert obj['state'] == 'ACTIVE'
        assert obj['accountName'] == 'Jamie Rivera'
        assert obj['accountId'] == CARD_ID[:20]
        assert obj['loyaltyPoints'] == {'label': 'Stamps', 'balance': {'string': '7/10'}}
        assert obj['barcode']['type'] == 'QR_CODE'
        assert obj['barcode']['value'] == CARD_ID
        assert obj['hexBackgroundColor'] == '#8b4513'

        modules = {m['id']: m for m in obj['textModulesData']}
        assert modules['reward']['header'] == 'Reward'
        assert modules['progress']['body'] == '70% - 3 stamps remaining'
        assert 'expiry' not in modules

    def test_short_card_id_is_padded(self, service_account, stamp_metadata, now):
        progress = derive(CardKind.STAMP, 1, 10, now=now)

        obj = GooglePassBuilder().build(progress, stamp_metadata, 'abc123', service_account).loyalty_object

        assert obj['accountId'] == 'abc12300000000000000'

    def test_guest_account_name(self, service_account, stamp_metadata, now):
        metadata = replace(stamp_metadata, customer_name=None)
        progress = derive(CardKind.STAMP, 1, 10, now=now)

        obj = GooglePassBuilder().build(progress, metadata, CARD_ID, service_account).loyalty_object

        assert obj['accountName'] == 'Guest User'

    def test_expiring_membership(self, service_account, membership_metadata, now):
        """
        GIVEN a membership expiring in 5 days
        WHEN the loyalty object is built
        THEN the expiry module carries the date and the countdown
        """
        progress = derive(CardKind.MEMBERSHIP, 4, 20, expires_at=now + timedelta(days=5), now=now)

        result = GooglePassBuilder().build(progress, membership_metadata, CARD_ID, service_account)
        obj = result.loyalty_object

        assert result.class_id == f'{ISSUER_ID}.rewardjar_membership_1'
        assert obj['loyaltyPoints']['label'] == 'Sessions'
        assert obj['hexBackgroundColor'] == '#6366f1'
        modules = {m['id']: m for m in obj['textModulesData']}
        assert modules['reward']['header'] == 'Benefit'
        assert modules['expiry']['body'] == 'Jun 06, 2025 (5 days)'

    def test_expired_membership(self, service_account, membership_metadata, now):
        progress = derive(CardKind.MEMBERSHIP, 4, 20, expires_at=now - timedelta(days=1), now=now)

        obj = GooglePassBuilder().build(progress, membership_metadata, CARD_ID, service_account).loyalty_object

        assert obj['state'] == 'EXPIRED'
        modules = {m['id']: m for m in obj['textModulesData']}
        assert modules['progress']['body'].endswith('Membership expired')

    def test_build_class(self, service_account, membership_metadata):
        doc = GooglePassBuilder().build_class(service_account, CardKind.MEMBERSHIP, membership_metadata)

        assert doc['id'] == f'{ISSUER_ID}.rewardjar_membership_1'
        assert doc['issuerName'] == 'Iron Temple Gym'
        assert doc['programName'] == 'Membership Cards'


@pytest.mark.unit
class TestGoogleServiceAccount:
    """Test service account loading."""

    def test_parse_rejects_missing_key(self):
        with pytest.raises(SigningUnavailable):
            parse_service_account({'client_email': 'a@b.test'}, ISSUER_ID)

    def test_parse_accepts_escaped_newlines(self):
        info, _ = make_service_account_info()
        info['private_key'] = info['private_key'].replace('\n', '\\n')

        account = parse_service_account(info, ISSUER_ID)

        assert account.client_email == info['client_email']

    def test_load_from_file(self, monkeypatch, tmp_path):
        """
        GIVEN a service account JSON file and an issuer id in the environment
        WHEN the service account is loaded
        THEN the account is parsed with the configured issuer id
        """
        info, _ = make_service_account_info()
        path = write_service_account_file(tmp_path, info)
        monkeypatch.setenv('GOOGLE_WALLET_ISSUER_ID', ISSUER_ID)
        monkeypatch.setenv('GOOGLE_WALLET_SERVICE_ACCOUNT', str(path))

        account = load_service_account(GooglePassConfig())

        assert account.issuer_id == ISSUER_ID
        assert account.client_email == info['client_email']

    def test_load_inline_json(self, monkeypatch):
        info, _ = make_service_account_info()
        monkeypatch.setenv('GOOGLE_WALLET_ISSUER_ID', ISSUER_ID)
        monkeypatch.setenv('GOOGLE_WALLET_SERVICE_ACCOUNT', json.dumps(info))

        account = load_service_account()

        assert account.client_email == info['client_email']

    def test_dotted_issuer_id_is_rejected(self, monkeypatch, tmp_path):
        info, _ = make_service_account_info()
        path = write_service_account_file(tmp_path, info)
        monkeypatch.setenv('GOOGLE_WALLET_ISSUER_ID', f'{ISSUER_ID}.rewardjar')
        monkeypatch.setenv('GOOGLE_WALLET_SERVICE_ACCOUNT', str(path))

        with pytest.raises(SigningUnavailable) as exc_info:
            load_service_account()

        assert 'numeric issuer id' in exc_info.value.message
