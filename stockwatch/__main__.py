from stockwatch.cli import cli

cli()
