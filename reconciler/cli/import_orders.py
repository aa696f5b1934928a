# reconciler/cli/import_orders.py
import asyncio
import json

import click

from reconciler.database import async_session, engine
from reconciler.services.order_import import OrderImporter
from reconciler.services.order_processor import OrderProcessor


def load_orders(path):
    """Read a JSON file holding a list of orders or an {"orders": [...]} page."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("orders", [])
    if not isinstance(data, list):
        raise click.ClickException(f"{path} does not contain a list of orders")
    return data


@click.command("import-orders")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--delay", type=float, default=None, help="Seconds to wait between orders")
@click.option("--topic", default=None, help="Topic recorded on the webhook log rows")
def import_orders(file, delay, topic):
    """Reconcile historical fulfilled orders from a JSON export"""
    orders = load_orders(file)
    click.echo(f"Importing {len(orders)} orders from {file}...")

    async def _import():
        try:
            importer = OrderImporter(OrderProcessor(async_session), delay_seconds=delay)
            return await importer.import_orders(orders, topic=topic)
        finally:
            await engine.dispose()

    summary = asyncio.run(_import())

    click.echo(
        f"Done: {summary.processed_count} processed, {summary.skipped_count} skipped, "
        f"{summary.error_count} errors (of {summary.total_orders})"
    )
    for error in summary.errors:
        click.echo(f"  order {error['order_id']}: {error['error']}", err=True)
