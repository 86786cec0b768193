#!/usr/bin/env python3
"""
Dispatch admin CLI - Command Line Interface
"""

import asyncio
import json
import secrets
from datetime import datetime

import click

from dispatch_admin.api.dependencies import AppServices
from dispatch_admin.config import ConfigError, load_config
from dispatch_admin.core.errors import ConfigNotFound, DispatchError
from dispatch_admin.core.models import IntervalUnit, ScheduleConfig, to_iso
from dispatch_admin.core.schedule import ScheduleEvaluator

DEFAULT_SCHEDULE = {
    'startTime': '08:00',
    'endTime': '17:00',
    'interval': 1,
    'intervalUnit': IntervalUnit.MINUTES.value,
    'dbRequestTimeout': 30000,
    'dbConnectionTimeout': 30000,
}


def _services(config_path) -> AppServices:
    try:
        return AppServices.from_config(load_config(config_path))
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        raise click.Abort()


@click.group()
@click.option('--config', 'config_path', default=None, type=click.Path(dir_okay=False),
              help='Path to the YAML settings file')
@click.pass_context
def cli(ctx, config_path):
    """Dispatch admin command line interface"""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path


@cli.command('generate-key')
def generate_key():
    """Print a fresh random encryption key"""
    click.echo(secrets.token_urlsafe(48))


@cli.command('reset-credentials')
@click.option('--username', prompt=True, help='New admin username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='New admin password')
@click.pass_context
def reset_credentials(ctx, username: str, password: str):
    """Replace the admin login, keeping the saved schedule"""
    services = _services(ctx.obj['config_path'])
    store = services.email_store

    try:
        schedule = store.load().to_dict()
        click.echo("Keeping existing schedule settings")
    except ConfigNotFound:
        schedule = dict(DEFAULT_SCHEDULE)
        click.echo("No email configuration found, using default schedule")
    except DispatchError as e:
        click.echo(f"Existing email configuration is unreadable ({e.message}), using default schedule", err=True)
        schedule = dict(DEFAULT_SCHEDULE)

    schedule['username'] = username
    schedule['password'] = password

    try:
        store.save(ScheduleConfig.from_dict(schedule))
    except DispatchError as e:
        click.echo(f"Failed to save credentials: {e.message}", err=True)
        raise click.Abort()

    click.echo(f"Credentials updated for user '{username}'")


@cli.command()
@click.pass_context
def status(ctx):
    """Reconcile once and print the dashboard snapshot"""
    services = _services(ctx.obj['config_path'])

    try:
        snapshot = asyncio.run(services.reconciler.snapshot())
    except DispatchError as e:
        click.echo(f"Status check failed: {e.message}", err=True)
        raise click.Abort()

    click.echo(json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False))


@cli.command('next-run')
@click.pass_context
def next_run(ctx):
    """Show window activity and the next scheduled run"""
    services = _services(ctx.obj['config_path'])

    try:
        schedule = services.email_store.load()
    except DispatchError as e:
        click.echo(f"Cannot read schedule: {e.message}", err=True)
        raise click.Abort()

    tz = services.config.schedule_tz
    now = datetime.now(tz) if tz is not None else datetime.now().astimezone()
    evaluator = ScheduleEvaluator(schedule)
    upcoming = evaluator.next_run(now)

    click.echo(f"Window: {schedule.start_time}-{schedule.end_time} "
               f"every {schedule.interval} {schedule.interval_unit.value}")
    click.echo(f"Active now: {'yes' if evaluator.is_active(now) else 'no'}")
    click.echo(f"Next run: {to_iso(upcoming) if upcoming else 'none'}")


if __name__ == '__main__':
    cli()
