"""
Pytest configuration and shared fixtures for all tests.
"""
import pytest

from rewardjar import create_app
from rewardjar.core import db as _db
from rewardjar.wallet_pass.card_data import PassMetadata

from tests.factories import (
    FIXED_NOW, make_certificate_chain, make_service_account, make_signing_material,
    write_pass_assets
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('web_config.TestingConfig')

    ctx = app.app_context()
    ctx.push()

    yield app

    ctx.pop()


@pytest.fixture
def db(app):
    """Create clean tables for each test."""
    _db.create_all()

    yield _db

    _db.session.remove()
    _db.drop_all()


@pytest.fixture
def runner(app):
    """Create Flask CLI runner."""
    return app.test_cli_runner()


# =============================================================================
# WALLET FIXTURES
# =============================================================================

@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture(scope='session')
def certificate_chain():
    """Throwaway CA + signer certificate chain (generated once per run)."""
    return make_certificate_chain()


@pytest.fixture(scope='session')
def signing_material(certificate_chain):
    return make_signing_material(certificate_chain)


@pytest.fixture(scope='session')
def google_account():
    """Service account and its private key."""
    return make_service_account()


@pytest.fixture
def service_account(google_account):
    return google_account[0]


@pytest.fixture
def assets_dir(tmp_path):
    return write_pass_assets(tmp_path / 'assets')


@pytest.fixture
def stamp_metadata():
    return PassMetadata(
        business_name='Bean There Coffee',
        card_name='Coffee Lovers',
        reward_description='Free drink of your choice',
        brand_color='#8B4513',
        icon_emoji='☕',
        customer_name='Jamie Rivera',
    )


@pytest.fixture
def membership_metadata():
    return PassMetadata(
        business_name='Iron Temple Gym',
        card_name='Premium Membership',
        reward_description='20 personal training sessions',
        customer_name='Alex Kim',
        membership_cost=150000,
    )
