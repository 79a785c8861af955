# stockwatch/cli/preferences.py
import click

from stockwatch.cli.common import run_with_container
from stockwatch.schemas.preferences import (
    MonitoringPreferences,
    NotificationPreferences,
    PushPreferences,
    SmsPreferences,
)


@click.command("seed-preferences")
@click.option("--phone", help="SMS recipient in E.164 format; enables SMS alerts")
@click.option("--default-interval", type=int, default=30, show_default=True, help="Poll interval for normal products (s)")
@click.option("--high-priority-interval", type=int, default=10, show_default=True, help="Poll interval for high-priority products (s)")
def seed_preferences(phone, default_interval, high_priority_interval):
    """Create or replace the single-user preference document"""
    if phone and not phone.startswith("+"):
        raise click.BadParameter("phone number must be in E.164 format, e.g. +15555550123", param_hint="--phone")

    notifications = NotificationPreferences(
        sms=SmsPreferences(enabled=bool(phone), phone_number=phone),
        push=PushPreferences(enabled=False),
    )
    monitoring = MonitoringPreferences(
        default_poll_interval_seconds=default_interval,
        high_priority_poll_interval_seconds=high_priority_interval,
    )

    async def _seed(container):
        await container.preference_store.save_preferences(notifications, monitoring)

    run_with_container(_seed)
    click.echo(f"Preferences saved (sms={'on' if phone else 'off'}, intervals {default_interval}s/{high_priority_interval}s)")
