# rewardjar/core/__init__.py

"""
Core Application Module

This module initializes the core components of the application:
  - SQLAlchemy for the wallet update queue table
  - Celery for scheduled queue draining

It also provides a function to configure Celery with the Flask application context.
"""

from flask_sqlalchemy import SQLAlchemy
from celery import Celery

# Initialize core components
db = SQLAlchemy()
celery = Celery('rewardjar')


def configure_celery(app):
    """
    Configure Celery to work with the Flask application context.

    Updates the Celery configuration from the Flask app's configuration,
    attaches the app to the Celery instance, and installs a Task base class
    that runs every task inside the application context.

    Args:
        app (Flask): The Flask application instance.

    Returns:
        Celery: The configured Celery instance.
    """
    celery.conf.update(
        broker_url=app.config.get('REDIS_URL', 'redis://redis:6379/0'),
        result_backend=app.config.get('CELERY_RESULT_BACKEND') or app.config.get('REDIS_URL', 'redis://redis:6379/0'),
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        timezone='UTC',
        enable_utc=True,
        broker_connection_retry_on_startup=True,
        worker_prefetch_multiplier=1,
        task_always_eager=app.config.get('CELERY_TASK_ALWAYS_EAGER', False),
        task_time_limit=10 * 60,
        task_soft_time_limit=5 * 60,
        beat_schedule={
            'process-wallet-updates': {
                'task': 'rewardjar.tasks.tasks_wallet_updates.process_wallet_updates',
                'schedule': float(app.config.get('WALLET_UPDATE_INTERVAL_SECONDS', 60)),
            },
        },
    )

    # Attach the Flask app to the Celery instance
    celery.flask_app = app

    class ContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask

    return celery
