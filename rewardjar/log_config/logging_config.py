# rewardjar/log_config/logging_config.py

"""
Logging configuration for the application.

Pass builds and queue drains log to the console and to a rotating wallet log;
warnings and errors from every logger also land in a rotating error log.
"""

import os

ROTATE_BYTES = 26214400  # 25MB
ROTATE_BACKUPS = 3


def _rotating_file(log_dir, filename, level):
    return {
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': os.path.join(log_dir, filename),
        'formatter': 'detailed',
        'level': level,
        'maxBytes': ROTATE_BYTES,
        'backupCount': ROTATE_BACKUPS,
        'encoding': 'utf-8',
        'delay': True
    }


def build_logging_config(log_dir='logs', wallet_level='INFO'):
    """
    Build the dictConfig for a deployment.

    Args:
        log_dir: Directory for wallet.log and errors.log
        wallet_level: Level for the rewardjar.wallet_pass and rewardjar.tasks loggers

    Returns:
        dict suitable for logging.config.dictConfig
    """
    return {
        'version': 1,
        'disable_existing_loggers': False,

        'formatters': {
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s'
            },
            'simple': {
                'format': '%(asctime)s [%(levelname)s] %(message)s'
            }
        },

        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'simple',
                'level': 'INFO',
            },
            'wallet_file': _rotating_file(log_dir, 'wallet.log', 'INFO'),
            'errors_file': _rotating_file(log_dir, 'errors.log', 'WARNING'),
        },

        'loggers': {
            'rewardjar.wallet_pass': {
                'handlers': ['console', 'wallet_file', 'errors_file'],
                'level': wallet_level,
                'propagate': False
            },
            'rewardjar.tasks': {
                'handlers': ['console', 'wallet_file', 'errors_file'],
                'level': wallet_level,
                'propagate': False
            },
            # Queue claims run inside long transactions; only surface real errors
            'sqlalchemy.engine': {
                'handlers': ['errors_file'],
                'level': 'ERROR',
                'propagate': False
            },
            'celery': {
                'handlers': ['console', 'errors_file'],
                'level': 'WARNING',
                'propagate': False
            }
        },

        'root': {
            'handlers': ['console', 'errors_file'],
            'level': 'WARNING',
        }
    }

