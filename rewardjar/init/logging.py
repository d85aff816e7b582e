# rewardjar/init/logging.py

"""
Logging Configuration

Console-only logging under TESTING; otherwise the rotating-file dictConfig
from log_config, written to LOG_DIR.
"""

import logging
import logging.config
import os


def init_logging(app):
    """
    Initialize logging for the Flask application.

    Args:
        app: The Flask application instance.
    """
    wallet_level = app.config.get('WALLET_LOG_LEVEL', 'INFO')

    if app.config.get('TESTING'):
        # No log files under test
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
        ))

        root_logger = logging.getLogger()
        root_logger.handlers = [console_handler]
        root_logger.setLevel(logging.WARNING)
        logging.getLogger('rewardjar').setLevel(wallet_level)
        return

    from rewardjar.log_config.logging_config import build_logging_config

    log_dir = app.config.get('LOG_DIR', 'logs')
    os.makedirs(log_dir, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_dir, wallet_level))
    app.logger.setLevel(logging.INFO if app.debug else logging.WARNING)
