# reconciler/cli/resolve.py
import asyncio

import click

from reconciler.core.exceptions import ResolutionCycleError
from reconciler.database import async_session, engine
from reconciler.services.variant_resolver import VariantResolver


@click.command()
@click.argument("product_id")
@click.argument("variant_id")
def resolve(product_id, variant_id):
    """Follow the identity chain of an external variant id"""

    async def _resolve():
        try:
            async with async_session() as db:
                return await VariantResolver(db).chain(product_id, variant_id)
        finally:
            await engine.dispose()

    try:
        path = asyncio.run(_resolve())
    except ResolutionCycleError as e:
        raise click.ClickException(str(e))

    click.echo(" -> ".join(path))
    if len(path) == 1:
        click.echo("(no identity changes recorded)")
