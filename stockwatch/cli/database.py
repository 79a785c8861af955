# stockwatch/cli/database.py
import click

from stockwatch.cli.common import run_with_container
from stockwatch.database import create_all_tables


@click.command("create-tables")
def create_tables():
    """Create all database tables directly using SQLAlchemy"""

    async def _create(container):
        await create_all_tables(container.engine)

    run_with_container(_create)
    click.echo("All tables created successfully!")


@click.command("purge-history")
def purge_history():
    """Delete inventory history entries past their TTL"""

    async def _purge(container):
        return await container.store.purge_expired_history()

    deleted = run_with_container(_purge)
    click.echo(f"Purged {deleted} expired history entries")
