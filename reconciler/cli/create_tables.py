# reconciler/cli/create_tables.py
import asyncio

import click

from reconciler.database import create_all, engine


@click.command("create-tables")
def create_tables():
    """Create all database tables directly using SQLAlchemy"""

    async def _create_tables():
        try:
            await create_all()
        finally:
            await engine.dispose()
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())
