from dropship.cli import cli

cli()
