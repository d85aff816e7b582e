# rewardjar/models/wallet_update.py

"""
Wallet Update Queue Model

Durable outbox of pending pass refreshes. The card data layer inserts a row
whenever an issued card's progress changes; the queue processor drains
pending rows oldest-first and marks each one processed or failed.
"""

import logging
from datetime import datetime
from enum import Enum

from sqlalchemy import and_

from rewardjar.core import db

logger = logging.getLogger(__name__)


class UpdateType(Enum):
    """Kinds of progress change that trigger a pass refresh"""
    STAMP_UPDATE = 'stamp_update'
    REWARD_COMPLETE = 'reward_complete'
    CARD_UPDATE = 'card_update'
    SESSION_UPDATE = 'session_update'
    MEMBERSHIP_UPDATE = 'membership_update'


class UpdateStatus(Enum):
    """Lifecycle state derived from the processed/failed flags"""
    PENDING = 'pending'
    PROCESSED = 'processed'
    FAILED = 'failed'


class WalletUpdate(db.Model):
    """One queued pass refresh for an issued card."""

    __tablename__ = 'wallet_update_queue'

    id = db.Column(db.Integer, primary_key=True)
    issued_card_id = db.Column(db.String(64), nullable=False, index=True)
    update_type = db.Column(db.String(32), nullable=False, default=UpdateType.CARD_UPDATE.value)

    processed = db.Column(db.Boolean, nullable=False, default=False)
    failed = db.Column(db.Boolean, nullable=False, default=False)
    error_message = db.Column(db.Text, nullable=True)

    # 'metadata' is reserved on declarative models
    update_metadata = db.Column('metadata', db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    processed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.CheckConstraint('NOT (processed AND failed)', name='ck_wallet_update_single_terminal'),
        db.Index('ix_wallet_update_pending', 'processed', 'failed', 'created_at'),
    )

    def __repr__(self):
        return f'<WalletUpdate {self.id}: {self.issued_card_id} {self.update_type} ({self.status.value})>'

    @property
    def status(self) -> UpdateStatus:
        if self.processed:
            return UpdateStatus.PROCESSED
        if self.failed:
            return UpdateStatus.FAILED
        return UpdateStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return bool(self.processed or self.failed)

    @classmethod
    def pending_filter(cls):
        """SQL predicate selecting rows that are neither processed nor failed."""
        return and_(cls.processed.is_(False), cls.failed.is_(False))

    def to_dict(self):
        return {
            'id': self.id,
            'issued_card_id': self.issued_card_id,
            'update_type': self.update_type,
            'status': self.status.value,
            'processed': self.processed,
            'failed': self.failed,
            'error_message': self.error_message,
            'metadata': self.update_metadata,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
        }
