# rewardjar/wallet_pass/services/__init__.py

"""
Wallet Pass Services

This package contains service classes for wallet pass operations:
- PassService: Per-platform rebuild of an issued card's pass
- UpdateQueueProcessor: Drains the wallet update queue
"""

from .pass_service import PassService
from .update_queue import (
    DrainResult, RecordResult, UpdateQueueProcessor, MAX_BATCH_SIZE,
    enqueue, get_snapshot_source, queue_status
)

__all__ = [
    'PassService',
    'DrainResult',
    'RecordResult',
    'UpdateQueueProcessor',
    'MAX_BATCH_SIZE',
    'enqueue',
    'get_snapshot_source',
    'queue_status',
]
