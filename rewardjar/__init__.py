# rewardjar/__init__.py

"""
Flask Application Factory

This module provides the create_app function to initialize and configure the
Flask application that hosts the wallet update queue, its CLI commands and
the Celery task that drains it.
"""

import logging
from flask import Flask

from rewardjar.core import db, configure_celery

logger = logging.getLogger(__name__)


def create_app(config_object='web_config.Config'):
    """
    Application factory function for creating a Flask app instance.

    Loads configuration from the specified config object, sets up logging,
    SQLAlchemy and Celery, and registers the wallet CLI commands.

    Args:
        config_object: The configuration object to load (default is 'web_config.Config').

    Returns:
        A configured Flask application instance.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    # SECRET_KEY is mandatory
    if not app.config.get('SECRET_KEY'):
        raise RuntimeError('SECRET_KEY must be set')

    from rewardjar.init import init_logging, init_cli_commands
    init_logging(app)

    db.init_app(app)
    # Register models with the metadata before any create_all
    from rewardjar import models  # noqa: F401

    configure_celery(app)
    # Register tasks with the configured Celery instance
    from rewardjar.tasks import tasks_wallet_updates  # noqa: F401

    init_cli_commands(app)

    logger.debug(f"Application created with {config_object}")
    return app
