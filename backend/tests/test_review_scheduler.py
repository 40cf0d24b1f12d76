import asyncio
from datetime import datetime, timedelta, timezone

from gamr.schemas.risk_sheets import RiskSheetCreate
from gamr.services.review_scheduler import ReviewScheduler
from gamr.services.risk_sheet_service import RiskSheetService


class RecordingManager:
    def __init__(self):
        self.published = []

    async def publish(self, event_type, data, *, tenant_id=None):
        self.published.append((event_type, tenant_id, data))
        return 0


async def _seed(db):
    service = RiskSheetService(review_period_days=10)
    critical = await service.create(
        db, "acme", RiskSheetCreate(target="Datacenter", scenario="Coupure", probability=3, vulnerability=4, impact=4)
    )
    low = await service.create(
        db, "globex", RiskSheetCreate(target="Parking", scenario="Vol", probability=1, vulnerability=1, impact=1)
    )
    archived = await service.create(
        db, "acme", RiskSheetCreate(target="Ancien site", scenario="Incendie", probability=3, vulnerability=4, impact=5)
    )
    await service.archive(db, "acme", archived.id)
    return critical, low


async def test_run_once_publishes_due_and_critical(db, session_factory):
    critical, low = await _seed(db)
    manager = RecordingManager()
    scheduler = ReviewScheduler(session_factory, manager, interval_seconds=60)

    now = datetime.now(timezone.utc)
    result = await scheduler.run_once(now=now)
    assert (result.review_due, result.critical) == (0, 1)
    assert [(t, tenant) for t, tenant, _ in manager.published] == [("RISK_CRITICAL", "acme")]
    assert manager.published[0][2]["id"] == critical.id

    manager.published.clear()
    result = await scheduler.run_once(now=now + timedelta(days=11))
    assert (result.review_due, result.critical) == (2, 1)
    due = [(data["id"], tenant) for t, tenant, data in manager.published if t == "REVIEW_DUE"]
    assert sorted(due, key=lambda x: x[1]) == [(critical.id, "acme"), (low.id, "globex")]


async def test_failed_tick_does_not_stop_loop():
    calls = []

    class FailingScheduler(ReviewScheduler):
        async def run_once(self, *, now=None):
            calls.append(now)
            raise RuntimeError("db down")

    scheduler = FailingScheduler(None, RecordingManager(), interval_seconds=0.01)
    await scheduler.start()
    await asyncio.sleep(0.05)
    assert scheduler.running
    await scheduler.stop()

    assert len(calls) >= 2
    assert not scheduler.running


async def test_stop_without_start_is_noop():
    scheduler = ReviewScheduler(None, RecordingManager(), interval_seconds=1)
    await scheduler.stop()
    assert not scheduler.running
