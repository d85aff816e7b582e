"""
Web Configuration Module

This module defines the configuration settings for the Flask application,
including database, Celery, and wallet signing settings.
Values are loaded primarily from environment variables.
"""

import os


def _int_env(name, default):
    return int(os.getenv(name, default))


class Config:
    """Application configuration settings."""
    # Basic Flask/App Configuration
    SECRET_KEY = os.getenv('SECRET_KEY')

    # Database Configuration
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///rewardjar.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    WALLET_LOG_LEVEL = os.getenv('WALLET_LOG_LEVEL', 'INFO')

    # Celery / Redis
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', REDIS_URL)
    CELERY_TASK_ALWAYS_EAGER = False

    # Apple Wallet
    WALLET_TEAM_ID = os.getenv('WALLET_TEAM_ID', '')
    WALLET_PASS_TYPE_ID = os.getenv('WALLET_PASS_TYPE_ID', '')
    WALLET_ORGANIZATION_NAME = os.getenv('WALLET_ORGANIZATION_NAME', 'RewardJar')
    WALLET_CERT_PATH = os.getenv('WALLET_CERT_PATH', 'certs/certificate.pem')
    WALLET_KEY_PATH = os.getenv('WALLET_KEY_PATH', 'certs/key.pem')
    WALLET_WWDR_PATH = os.getenv('WALLET_WWDR_PATH', 'certs/wwdr.pem')
    WALLET_KEY_PASSWORD = os.getenv('WALLET_KEY_PASSWORD', '')
    WALLET_WEB_SERVICE_URL = os.getenv('WALLET_WEB_SERVICE_URL', '')
    WALLET_ASSETS_PATH = os.getenv('WALLET_ASSETS_PATH', 'assets/apple')

    # Google Wallet
    GOOGLE_WALLET_ISSUER_ID = os.getenv('GOOGLE_WALLET_ISSUER_ID', '')
    GOOGLE_WALLET_SERVICE_ACCOUNT = os.getenv(
        'GOOGLE_WALLET_SERVICE_ACCOUNT', 'certs/google-service-account.json'
    )
    GOOGLE_WALLET_CLASS_SUFFIX_STAMP = os.getenv('GOOGLE_WALLET_CLASS_SUFFIX_STAMP', 'rewardjar_stamp_1')
    GOOGLE_WALLET_CLASS_SUFFIX_MEMBERSHIP = os.getenv(
        'GOOGLE_WALLET_CLASS_SUFFIX_MEMBERSHIP', 'rewardjar_membership_1'
    )

    # Update queue
    WALLET_EXPIRY_URGENCY_DAYS = _int_env('WALLET_EXPIRY_URGENCY_DAYS', 14)
    WALLET_UPDATE_BATCH_SIZE = min(_int_env('WALLET_UPDATE_BATCH_SIZE', 50), 50)
    WALLET_UPDATE_INTERVAL_SECONDS = _int_env('WALLET_UPDATE_INTERVAL_SECONDS', 60)
    # Import path of the card snapshot source factory, e.g. 'cards.wallet:SnapshotSource'
    WALLET_SNAPSHOT_SOURCE = os.getenv('WALLET_SNAPSHOT_SOURCE', '')


class TestingConfig(Config):
    """Configuration for running the test suite."""
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    REDIS_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True
    WALLET_SNAPSHOT_SOURCE = ''
