# tests/unit/services/test_consistency_auditor.py
import pytest

from reconciler.core.enums import AuditFamily, AuditStatus
from reconciler.services.consistency_auditor import ConsistencyAuditor, extract_color, format_selections


def test_extract_color_is_case_insensitive():
    selections = [("Size", "L"), ("FARBE", "Rot")]

    assert extract_color(selections, ["farbe", "color"]) == "Rot"
    assert extract_color([("Size", "L")], ["farbe", "color"]) is None
    assert extract_color(None, ["farbe"]) is None


def test_format_selections():
    assert format_selections([("Farbe", "Rot"), ("Size", "L")]) == "Farbe=Rot, Size=L"
    assert format_selections([]) == "(none)"


@pytest.mark.asyncio
async def test_variant_mapping_colour_mismatch(db_session, catalog):
    red = await catalog.variant("Jacket", "JK-R", selections={"Farbe": "Rot"})
    await catalog.variant_mapping("55", red, title="Blue Edition")

    rows = await ConsistencyAuditor(db_session, color_names=["farbe", "color"]).audit_mappings()

    assert len(rows) == 1
    row = rows[0]
    assert row.family == AuditFamily.VARIANT_MAPPING
    assert row.status == AuditStatus.MISMATCH
    assert "Rot" in row.note
    assert "Blue Edition" in row.note
    assert row.selections == "Farbe=Rot"
    assert row.sku == "JK-R"


@pytest.mark.asyncio
async def test_variant_mapping_matching_or_untitled_is_ok(db_session, catalog):
    red = await catalog.variant("Jacket", "JK-R", selections={"Color": "Red"})
    plain = await catalog.variant("Glue", "GL-1")
    await catalog.variant_mapping("55", red, title="Jacket / RED / L")
    await catalog.variant_mapping("56", red, title=None)
    await catalog.variant_mapping("57", plain, title="Blue Edition")

    rows = await ConsistencyAuditor(db_session, color_names=["farbe", "color"]).audit_mappings()

    assert [row.status for row in rows] == [AuditStatus.OK] * 3


@pytest.mark.asyncio
async def test_inactive_mapping_is_a_warning(db_session, catalog):
    red = await catalog.variant("Jacket", "JK-R", selections={"Farbe": "Rot"})
    await catalog.variant_mapping("55", red, title="Blue Edition", status="disabled")

    rows = await ConsistencyAuditor(db_session, color_names=["farbe"]).audit_mappings()

    assert rows[0].status == AuditStatus.WARNING
    assert rows[0].note == "Mapping is disabled"


@pytest.mark.asyncio
async def test_property_mapping_rules_against_colour(db_session, catalog):
    red = await catalog.variant("Cap", "CAP-R", selections={"Farbe": "Rot"})
    await catalog.property_mapping("99", {"Farbe": "Dunkelrot"}, red)
    await catalog.property_mapping("99", {"Farbe": "Blau"}, red)

    rows = await ConsistencyAuditor(db_session, color_names=["farbe"]).audit_mappings()

    assert [row.family for row in rows] == [AuditFamily.PROPERTY_MAPPING] * 2
    assert rows[0].status == AuditStatus.OK
    assert rows[1].status == AuditStatus.MISMATCH
    assert rows[1].external_title == 'Rules: {"Farbe": "Blau"}'


@pytest.mark.asyncio
async def test_bom_rows(db_session, catalog):
    red_ski = await catalog.variant("Ski", "SKI-R", selections={"Farbe": "Rot"})
    red_binding = await catalog.variant("Binding", "BND-R", selections={"Farbe": "rot"})
    blue_binding = await catalog.variant("Binding blue", "BND-B", selections={"Farbe": "Blau"})
    screw = await catalog.variant("Screw", "SCR", product_type="RAW")
    await catalog.bom(red_ski, red_binding)
    await catalog.bom(red_ski, blue_binding)
    await catalog.bom(red_ski, screw, quantity=8)
    await catalog.bom(red_ski, red_ski)

    report = await ConsistencyAuditor(db_session, color_names=["farbe"]).audit_report()
    rows = report.bom_entries

    assert [row.status for row in rows] == [
        AuditStatus.OK, AuditStatus.MISMATCH, AuditStatus.OK, AuditStatus.MISMATCH,
    ]
    assert "Blau" in rows[1].note
    assert rows[2].note == "Component has no colour (possibly correct)"
    assert rows[2].component_selections == "(none)"
    assert rows[2].component_sku == "SCR"
    assert rows[3].note.startswith("Self-reference")

    assert report.status_counts() == {"ok": 2, "mismatch": 2, "warning": 0}


@pytest.mark.asyncio
async def test_empty_catalog_reports_nothing(db_session):
    report = await ConsistencyAuditor(db_session).audit_report()

    assert report.rows == []
    assert report.status_counts() == {"ok": 0, "mismatch": 0, "warning": 0}
