# rewardjar/wallet_pass/cli.py

"""
Wallet Pass CLI Commands

Flask CLI commands for the wallet update queue:
- Queue a refresh for an issued card
- Drain a batch on demand
- Show queue counts
- Check platform signing configuration
"""

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from rewardjar.models import UpdateType


@click.group()
def wallet():
    """Wallet pass management commands."""
    pass


@wallet.command()
@click.argument('issued_card_id')
@click.option(
    '--type', 'update_type',
    type=click.Choice([t.value for t in UpdateType]),
    default=UpdateType.CARD_UPDATE.value,
    help='Kind of change that triggered the refresh'
)
@click.option('--metadata', default=None, help='JSON context stored with the record')
@with_appcontext
def enqueue(issued_card_id, update_type, metadata):
    """Queue a pass refresh for ISSUED_CARD_ID."""
    from rewardjar.wallet_pass.services import enqueue as enqueue_update

    try:
        context = json.loads(metadata) if metadata else None
    except json.JSONDecodeError as e:
        raise click.BadParameter(f'Invalid JSON: {e}', param_hint='--metadata')

    record = enqueue_update(issued_card_id, update_type, metadata=context)
    click.echo(f'Queued wallet update {record.id} ({update_type}) for {issued_card_id}')


@wallet.command()
@click.option('--batch-size', default=None, type=click.IntRange(1, 50), help='Records to claim (max 50)')
@with_appcontext
def drain(batch_size):
    """Process one batch of pending wallet updates."""
    from rewardjar.wallet_pass.services import (
        PassService, UpdateQueueProcessor, get_snapshot_source
    )

    source = get_snapshot_source()
    if source is None:
        raise click.ClickException('WALLET_SNAPSHOT_SOURCE is not configured')

    processor = UpdateQueueProcessor(
        source,
        pass_service=PassService(
            assets_path=current_app.config.get('WALLET_ASSETS_PATH'),
            urgency_days=current_app.config.get('WALLET_EXPIRY_URGENCY_DAYS', 14),
        ),
    )
    result = processor.drain(batch_size or current_app.config.get('WALLET_UPDATE_BATCH_SIZE', 50))

    click.echo(f'Processed: {result.processed_count}')
    click.echo(f'Failed: {result.failed_count}')
    if result.skipped_count:
        click.echo(f'Skipped: {result.skipped_count}')
    for record in result.results:
        if record.outcome == 'failed':
            click.echo(f'  #{record.record_id} {record.issued_card_id}: {record.error_message}')


@wallet.command()
@click.option('--by-type', is_flag=True, help='Break counts down by update type')
@with_appcontext
def status(by_type):
    """Show wallet update queue counts."""
    from rewardjar.wallet_pass.services import queue_status

    counts = queue_status(group_by_type=by_type)

    click.echo('\nWallet Update Queue:')
    click.echo('=' * 40)
    for key in ('total', 'pending', 'processed', 'failed'):
        click.echo(f'  {key.capitalize()}: {counts[key]}')

    if by_type:
        for update_type, type_counts in sorted(counts['by_type'].items()):
            click.echo(f'\n{update_type}:')
            for key in ('total', 'pending', 'processed', 'failed'):
                click.echo(f'  {key.capitalize()}: {type_counts[key]}')
    click.echo('=' * 40)


@wallet.command('check-config')
@with_appcontext
def check_config():
    """Check Apple and Google Wallet signing configuration."""
    from rewardjar.wallet_pass.generators import validate_apple_config, validate_google_config

    for name, result in (('Apple Wallet', validate_apple_config()), ('Google Wallet', validate_google_config())):
        state = 'configured' if result['configured'] else 'NOT configured'
        click.echo(f'{name}: {state}')
        for issue in result['issues']:
            click.echo(f'  - {issue}')
