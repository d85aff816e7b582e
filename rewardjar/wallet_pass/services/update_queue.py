# rewardjar/wallet_pass/services/update_queue.py

"""
Wallet Update Queue

Enqueue, drain and report on the wallet_update_queue outbox.

A drain claims up to ``batch_size`` pending rows oldest-first (row locks with
SKIP LOCKED where the database supports them), rebuilds every platform the
issued card uses and writes exactly one terminal state per row. The terminal
write is conditional on the row still being pending, so an overlapping run
can never flip a row that another run already finished. Each record's
rebuild runs in a savepoint, so a database error raised by the data layer
fails that record alone. Records are never
retried automatically; a failed card needs a fresh enqueue.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import import_string

from rewardjar.core import db
from rewardjar.models import WalletUpdate, UpdateType

from ..card_data import CardSnapshotSource, WalletPlatform
from ..errors import QueueRecordTerminal, WalletPassError
from .pass_service import PassService

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50

EventSink = Callable[[str, Dict[str, Any]], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(value: datetime) -> datetime:
    # processed_at is stored as naive UTC; naive clock values are already UTC.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass
class RecordResult:
    """Outcome of one queue record within a drain."""
    record_id: int
    issued_card_id: str
    outcome: str  # 'processed' | 'failed' | 'skipped'
    platforms: Dict[str, str] = field(default_factory=dict)
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'record_id': self.record_id,
            'issued_card_id': self.issued_card_id,
            'outcome': self.outcome,
            'platforms': dict(self.platforms),
            'error_message': self.error_message,
        }


@dataclass
class DrainResult:
    processed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    results: List[RecordResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed_count': self.processed_count,
            'failed_count': self.failed_count,
            'skipped_count': self.skipped_count,
            'results': [result.to_dict() for result in self.results],
        }


def enqueue(
    issued_card_id: str,
    update_type=UpdateType.CARD_UPDATE,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True
) -> WalletUpdate:
    """
    Queue a pass refresh for an issued card.

    Args:
        issued_card_id: Issued card identifier
        update_type: UpdateType (or its string value)
        metadata: Optional JSON context stored with the record
        commit: Whether to commit to database

    Returns:
        WalletUpdate instance
    """
    update_type = UpdateType(update_type)
    record = WalletUpdate(
        issued_card_id=str(issued_card_id),
        update_type=update_type.value,
        update_metadata=metadata,
        processed=False,
        failed=False,
    )
    db.session.add(record)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    logger.info(
        f"Queued wallet update {record.id} for card {issued_card_id}",
        extra={'record_id': record.id, 'update_type': update_type.value}
    )
    return record


def queue_status(group_by_type: bool = False) -> Dict[str, Any]:
    """
    Aggregate counts over the queue.

    Args:
        group_by_type: Include a per-update-type breakdown

    Returns:
        Dict with total, pending, processed and failed counts (and by_type)
    """
    rows = db.session.query(
        WalletUpdate.update_type,
        WalletUpdate.processed,
        WalletUpdate.failed,
        func.count(WalletUpdate.id)
    ).group_by(
        WalletUpdate.update_type, WalletUpdate.processed, WalletUpdate.failed
    ).all()

    def empty():
        return {'total': 0, 'pending': 0, 'processed': 0, 'failed': 0}

    totals = empty()
    by_type: Dict[str, Dict[str, int]] = {}

    for update_type, processed, failed, count in rows:
        if processed:
            bucket = 'processed'
        elif failed:
            bucket = 'failed'
        else:
            bucket = 'pending'
        for counts in (totals, by_type.setdefault(update_type, empty())):
            counts['total'] += count
            counts[bucket] += count

    if group_by_type:
        totals['by_type'] = by_type
    return totals


def get_snapshot_source() -> Optional[CardSnapshotSource]:
    """
    Resolve the snapshot source registered on the current app.

    Either an object stored in ``app.extensions['wallet_snapshot_source']``
    or a factory named by the WALLET_SNAPSHOT_SOURCE import path.
    """
    source = current_app.extensions.get('wallet_snapshot_source')
    if source is not None:
        return source

    import_path = current_app.config.get('WALLET_SNAPSHOT_SOURCE')
    if not import_path:
        return None

    factory = import_string(import_path)
    source = factory() if callable(factory) else factory
    current_app.extensions['wallet_snapshot_source'] = source
    return source


class UpdateQueueProcessor:
    """
    Drains the wallet update queue in bounded batches.

    The processor holds no state between drains; the queue table is the only
    shared state.
    """

    def __init__(
        self,
        snapshot_source: CardSnapshotSource,
        pass_service: PassService = None,
        event_sink: Optional[EventSink] = None,
        clock: Callable[[], datetime] = None
    ):
        """
        Args:
            snapshot_source: Loads the current CardSnapshot for an issued card
            pass_service: PassService used for rebuilds
            event_sink: Optional callable receiving (event_name, payload)
            clock: Returns the current UTC time (defaults to the system clock)
        """
        self.snapshot_source = snapshot_source
        self.pass_service = pass_service or PassService()
        self.event_sink = event_sink
        self.clock = clock or _utcnow

    # =========================================================================
    # Events
    # =========================================================================

    def _emit(self, event_name: str, payload: Dict[str, Any]):
        if self.event_sink is None:
            return
        try:
            self.event_sink(event_name, payload)
        except Exception:
            logger.warning(f"Event sink failed for {event_name}", exc_info=True)

    # =========================================================================
    # Drain
    # =========================================================================

    def claim_batch(self, batch_size: int) -> List[WalletUpdate]:
        """Select up to ``batch_size`` pending records, oldest first, locking them."""
        return WalletUpdate.query.filter(
            WalletUpdate.pending_filter()
        ).order_by(
            WalletUpdate.created_at.asc(), WalletUpdate.id.asc()
        ).limit(batch_size).with_for_update(skip_locked=True).all()

    def drain(self, batch_size: int = MAX_BATCH_SIZE) -> DrainResult:
        """
        Process one batch of pending records.

        Args:
            batch_size: Maximum records to claim (capped at 50)

        Returns:
            DrainResult with processed/failed counts and per-record results
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if batch_size > MAX_BATCH_SIZE:
            logger.warning(f"batch_size {batch_size} capped at {MAX_BATCH_SIZE}")
            batch_size = MAX_BATCH_SIZE

        result = DrainResult()
        records = self.claim_batch(batch_size)
        if not records:
            logger.debug("No pending wallet updates")
            db.session.commit()
            return result

        logger.info(f"Processing {len(records)} wallet updates")

        # Read everything needed before any terminal write touches the rows.
        claimed = [(record.id, record.issued_card_id, record.update_type) for record in records]

        try:
            for record_id, issued_card_id, update_type in claimed:
                record_result = self.process_record(record_id, issued_card_id, update_type)
                result.results.append(record_result)
                if record_result.outcome == 'processed':
                    result.processed_count += 1
                elif record_result.outcome == 'failed':
                    result.failed_count += 1
                else:
                    result.skipped_count += 1

            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.error("Wallet update batch could not be committed", exc_info=True)
            raise

        logger.info(
            f"Wallet update batch complete: {result.processed_count} processed, "
            f"{result.failed_count} failed, {result.skipped_count} skipped",
            extra={
                'processed_count': result.processed_count,
                'failed_count': result.failed_count,
                'skipped_count': result.skipped_count,
            }
        )
        return result

    def process_record(self, record_id: int, issued_card_id: str, update_type: str = None) -> RecordResult:
        """
        Rebuild every platform for one record and write its terminal state.

        Failures are contained here; nothing raised by a builder or the
        snapshot source escapes to the batch.
        """
        now = self.clock()
        record_result = RecordResult(record_id=record_id, issued_card_id=issued_card_id, outcome='failed')

        # Work done by the data layer for this record is undone on failure
        # without touching the terminal writes of earlier records.
        savepoint = db.session.begin_nested()
        try:
            succeeded, error_message = self._rebuild(record_result, update_type, now)
            if savepoint.is_active:
                savepoint.commit()
            else:
                savepoint.rollback()
        except SQLAlchemyError as e:
            if db.session.in_nested_transaction():
                savepoint.rollback()
            logger.error(
                f"Database error while refreshing card {issued_card_id}",
                extra={'record_id': record_id}, exc_info=True
            )
            succeeded, error_message = False, f"database: {e}"

        return self._finish(record_result, succeeded, error_message, now)

    def _rebuild(self, record_result: RecordResult, update_type: Optional[str], now: datetime):
        """
        Rebuild every platform the card uses.

        Returns:
            Tuple of (succeeded, error_message)
        """
        record_id = record_result.record_id
        issued_card_id = record_result.issued_card_id

        try:
            snapshot = self.snapshot_source.get_snapshot(issued_card_id)
        except Exception as e:
            logger.error(
                f"Snapshot lookup failed for card {issued_card_id}",
                extra={'record_id': record_id}, exc_info=True
            )
            return False, f"snapshot: {e}"

        if snapshot is None:
            return False, f"Issued card {issued_card_id} not found"

        try:
            snapshot.progress(now)
        except WalletPassError as e:
            return False, f"progress: {e}"

        platforms = sorted(snapshot.platforms, key=lambda p: p.value)
        if not platforms:
            logger.info(f"Card {issued_card_id} has no wallet platforms; nothing to refresh")
            return True, None

        errors = []
        for platform in platforms:
            platform = WalletPlatform(platform)
            try:
                artifact = self.pass_service.build_for_platform(platform, snapshot, now=now)
            except WalletPassError as e:
                errors.append(f"{platform.value}: {e}")
                record_result.platforms[platform.value] = e.error_code
                logger.warning(
                    f"{platform.value} rebuild failed for card {issued_card_id}: {e}",
                    extra={'record_id': record_id, 'error_code': e.error_code, 'step': e.step}
                )
                self._emit('wallet_pass.platform_failed', {
                    'record_id': record_id,
                    'issued_card_id': issued_card_id,
                    'platform': platform.value,
                    'error': e.to_dict(),
                })
            except Exception as e:
                errors.append(f"{platform.value}: {e}")
                record_result.platforms[platform.value] = 'UNEXPECTED_ERROR'
                logger.error(
                    f"Unexpected error rebuilding {platform.value} pass for card {issued_card_id}",
                    extra={'record_id': record_id}, exc_info=True
                )
                self._emit('wallet_pass.platform_failed', {
                    'record_id': record_id,
                    'issued_card_id': issued_card_id,
                    'platform': platform.value,
                    'error': {'error_code': 'UNEXPECTED_ERROR', 'message': str(e)},
                })
            else:
                record_result.platforms[platform.value] = 'ok'
                self._emit('wallet_pass.regenerated', {
                    'record_id': record_id,
                    'issued_card_id': issued_card_id,
                    'update_type': update_type,
                    'platform': platform.value,
                    'artifact': artifact,
                })

        # Partial success still counts as processed.
        succeeded = len(errors) < len(platforms)
        return succeeded, '; '.join(errors) if errors else None

    def _finish(self, record_result: RecordResult, succeeded: bool,
                error_message: Optional[str], now: datetime) -> RecordResult:
        record_result.error_message = error_message
        try:
            self.mark_terminal(record_result.record_id, succeeded, error_message, now)
        except QueueRecordTerminal as e:
            logger.info(f"{e}; leaving it unchanged", extra={'record_id': record_result.record_id})
            record_result.outcome = 'skipped'
            self._emit('wallet_update.skipped', record_result.to_dict())
            return record_result

        record_result.outcome = 'processed' if succeeded else 'failed'
        if not succeeded:
            logger.error(
                f"Wallet update {record_result.record_id} failed: {error_message}",
                extra={'record_id': record_result.record_id, 'issued_card_id': record_result.issued_card_id}
            )
        self._emit(f"wallet_update.{record_result.outcome}", record_result.to_dict())
        return record_result

    def mark_terminal(self, record_id: int, succeeded: bool, error_message: Optional[str] = None,
                      now: datetime = None):
        """
        Move a pending record to processed or failed.

        Raises:
            QueueRecordTerminal: If the record is no longer pending
        """
        processed_at = _naive_utc(now or self.clock())
        statement = update(WalletUpdate).where(
            WalletUpdate.id == record_id,
            WalletUpdate.pending_filter()
        ).values(
            processed=bool(succeeded),
            failed=not succeeded,
            error_message=error_message,
            processed_at=processed_at,
        ).execution_options(synchronize_session=False)

        if db.session.execute(statement).rowcount == 0:
            raise QueueRecordTerminal(record_id)
