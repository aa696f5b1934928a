# reconciler/cli/__init__.py
import click

from reconciler.cli import audit, create_tables, import_orders, resolve
from reconciler.core.logging_config import configure_logging


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL from settings")
def cli(log_level):
    """Order-to-inventory reconciliation tools."""
    configure_logging(log_level)


cli.add_command(import_orders.import_orders)
cli.add_command(audit.audit)
cli.add_command(resolve.resolve)
cli.add_command(create_tables.create_tables)


def main():
    cli()
