# reconciler/cli/audit.py
import asyncio

import click

from reconciler.core.enums import AuditStatus
from reconciler.database import async_session, engine
from reconciler.services.consistency_auditor import ConsistencyAuditor


def _row_line(row):
    target = f"{row.product_name} [{row.sku}] {row.selections}"
    if row.component_name is not None:
        source = f"{row.component_name} [{row.component_sku}] {row.component_selections}"
    else:
        source = f"{row.external_variant_id}: {row.external_title or ''}"
    line = f"  #{row.row_id} {row.status.value.upper():8} {source}  =>  {target} x{row.quantity.normalize()}"
    if row.note:
        line += f"\n      {row.note}"
    return line


@click.command()
@click.option("--problems-only", is_flag=True, help="Only show mismatch and warning rows")
def audit(problems_only):
    """Check mapping and BOM colour consistency"""

    async def _audit():
        try:
            async with async_session() as db:
                return await ConsistencyAuditor(db).audit_report()
        finally:
            await engine.dispose()

    report = asyncio.run(_audit())

    sections = [
        ("Variant mappings", report.variant_mappings),
        ("Property mappings", report.property_mappings),
        ("Bill of materials", report.bom_entries),
    ]
    for title, rows in sections:
        if problems_only:
            rows = [row for row in rows if row.status != AuditStatus.OK]
        click.echo(f"\n{title} ({len(rows)}):")
        for row in rows:
            click.echo(_row_line(row))

    counts = report.status_counts()
    click.echo(
        f"\nSummary: {counts['ok']} ok, {counts['mismatch']} mismatch, {counts['warning']} warning"
    )
    if counts["mismatch"]:
        raise SystemExit(1)
