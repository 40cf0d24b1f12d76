from sqlalchemy import select, update

from gamr.models.risk_sheet import RiskSheet
from gamr.models.risk_sheet_event import RiskSheetEvent
from gamr.schemas.risk_sheets import RiskSheetCreate
from gamr.services.risk_sheet_service import RiskSheetService
from scripts.rescore_all import main as rescore_all

TENANT = "acme"


async def _stale_sheet(db):
    sheet = await RiskSheetService().create(
        db,
        TENANT,
        RiskSheetCreate(target="Datacenter", scenario="Coupure électrique", probability=2, vulnerability=3, impact=4),
        actor="alice",
        request_id="req-1",
    )
    # score stocké dans une ancienne unité
    await db.execute(update(RiskSheet).where(RiskSheet.id == sheet.id).values(risk_score=5, priority="LOW"))
    await db.commit()
    return sheet.id


async def _reload(session_factory, sheet_id):
    async with session_factory() as db:
        sheet = await db.get(RiskSheet, sheet_id)
        events = (
            await db.execute(
                select(RiskSheetEvent).where(
                    RiskSheetEvent.risk_sheet_id == sheet_id,
                    RiskSheetEvent.event_type == "RESCORED",
                )
            )
        ).scalars().all()
        return sheet, events


async def test_dry_run_reports_without_writing(db, session_factory):
    sheet_id = await _stale_sheet(db)

    assert await rescore_all(TENANT, dry_run=True, session_factory=session_factory) == 1

    sheet, events = await _reload(session_factory, sheet_id)
    assert (sheet.risk_score, sheet.priority) == (5, "LOW")
    assert events == []


async def test_rescore_fixes_stale_score_and_records_event(db, session_factory):
    sheet_id = await _stale_sheet(db)

    assert await rescore_all(TENANT, dry_run=False, session_factory=session_factory) == 1

    sheet, events = await _reload(session_factory, sheet_id)
    assert (sheet.risk_score, sheet.priority) == (24, "MEDIUM")
    assert [(e.old_score, e.new_score, e.actor) for e in events] == [(5, 24, "rescore_all")]

    # second passage : rien à corriger
    assert await rescore_all(TENANT, dry_run=False, session_factory=session_factory) == 0


async def test_other_tenant_is_left_alone(db, session_factory):
    sheet_id = await _stale_sheet(db)

    assert await rescore_all("globex", dry_run=False, session_factory=session_factory) == 0

    sheet, _ = await _reload(session_factory, sheet_id)
    assert sheet.risk_score == 5
