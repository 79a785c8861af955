# stockwatch/cli/service.py
import asyncio

import click

from stockwatch.cli.common import run_with_container
from stockwatch.core.config import get_settings
from stockwatch.core.exceptions import ConfigurationError
from stockwatch.main import run_service


@click.command()
def run():
    """Run the poll scheduler and the notification worker until stopped"""
    try:
        asyncio.run(run_service(get_settings()))
    except ConfigurationError as e:
        raise click.ClickException(str(e))


@click.command("poll-once")
def poll_once():
    """Run a single inventory tick (products not yet due are left alone)"""

    async def _poll(container):
        return await container.monitor.run_tick()

    summary = run_with_container(_poll)
    click.echo(
        f"Checked {summary.checked} of {summary.total} active products "
        f"({summary.not_due} not due): {summary.succeeded} succeeded, "
        f"{summary.failed} failed, {summary.skipped} skipped, "
        f"{summary.transitions} transitions in {summary.duration_ms}ms"
    )
    for outcome in summary.outcomes:
        if outcome.error:
            click.echo(f"  {outcome.retailer}/{outcome.sku}: {outcome.error}")


@click.command("process-notifications")
@click.option("--max-batches", type=int, default=1, show_default=True, help="Stop after this many batches")
def process_notifications(max_batches):
    """Drain queued notification requests without starting the scheduler"""

    async def _process(container):
        totals = {"received": 0, "completed": 0, "abandoned": 0, "dead_lettered": 0}
        for _ in range(max_batches):
            summary = await container.worker.process_batch()
            totals["received"] += summary.received
            totals["completed"] += summary.completed
            totals["abandoned"] += summary.abandoned
            totals["dead_lettered"] += summary.dead_lettered
            if summary.received == 0:
                break
        return totals

    totals = run_with_container(_process)
    click.echo(
        f"Processed {totals['received']} notifications: {totals['completed']} completed, "
        f"{totals['abandoned']} abandoned, {totals['dead_lettered']} dead-lettered"
    )
