"""Operational command line for stockwatch."""

import click

from stockwatch.cli.database import create_tables, purge_history
from stockwatch.cli.preferences import seed_preferences
from stockwatch.cli.retailer import find_stores, validate_sku
from stockwatch.cli.service import poll_once, process_notifications, run


@click.group()
def cli():
    """stockwatch - retail inventory monitor"""


for command in (run, poll_once, process_notifications, create_tables, seed_preferences, validate_sku, find_stores, purge_history):
    cli.add_command(command)


if __name__ == "__main__":
    cli()
