# rewardjar/tasks/tasks_wallet_updates.py

"""
Wallet Update Queue Task

Celery task that drains one batch of the wallet update queue. Scheduled by
celery beat every WALLET_UPDATE_INTERVAL_SECONDS; can also be triggered on
demand after a burst of progress changes.
"""

import logging
from typing import Any, Dict

from flask import current_app

from rewardjar.core import celery

logger = logging.getLogger(__name__)


@celery.task(
    name='rewardjar.tasks.tasks_wallet_updates.process_wallet_updates',
    bind=True,
    max_retries=0,  # Failed records need an explicit re-enqueue
    soft_time_limit=5 * 60,
    time_limit=10 * 60
)
def process_wallet_updates(self, batch_size: int = None) -> Dict[str, Any]:
    """
    Drain one batch of pending wallet updates.

    Args:
        batch_size: Records to claim (defaults to WALLET_UPDATE_BATCH_SIZE)

    Returns:
        dict with success flag and processed/failed counts
    """
    from rewardjar.wallet_pass.services import (
        PassService, UpdateQueueProcessor, get_snapshot_source
    )

    source = get_snapshot_source()
    if source is None:
        logger.error("WALLET_SNAPSHOT_SOURCE is not configured; wallet updates not processed")
        return {'success': False, 'error': 'snapshot source not configured'}

    batch_size = batch_size or current_app.config.get('WALLET_UPDATE_BATCH_SIZE', 50)
    processor = UpdateQueueProcessor(
        source,
        pass_service=PassService(
            assets_path=current_app.config.get('WALLET_ASSETS_PATH'),
            urgency_days=current_app.config.get('WALLET_EXPIRY_URGENCY_DAYS', 14),
        ),
    )

    result = processor.drain(batch_size)
    return {
        'success': True,
        'processed_count': result.processed_count,
        'failed_count': result.failed_count,
        'skipped_count': result.skipped_count,
    }
