from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gamr.core.realtime import ConnectionManager
from gamr.engine.scoring import Priority
from gamr.models.risk_sheet import RiskSheet

"""
Review Scheduler.

Rôle (fonctionnel) :
- Tâche asyncio périodique démarrée avec l’application (lifespan), annulée à l’arrêt.
- À chaque passage :
  - fiches non archivées dont la date de revue est dépassée -> REVIEW_DUE
  - fiches non archivées de priorité CRITICAL -> RISK_CRITICAL
- Les événements partent sur le manager WebSocket (best-effort).

Notes :
- run_once() est appelable directement (tests, script, déclenchement manuel).
- Une erreur pendant un passage est loggée et n’arrête pas la boucle.
"""

log = logging.getLogger("gamr.review_scheduler")


@dataclass(frozen=True)
class ScanResult:
    review_due: int
    critical: int


def _summary(sheet: RiskSheet) -> dict:
    return {
        "id": sheet.id,
        "target": sheet.target,
        "priority": sheet.priority,
        "risk_score": sheet.risk_score,
        "review_date": sheet.review_date,
    }


class ReviewScheduler:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        manager: ConnectionManager,
        *,
        interval_seconds: float,
    ) -> None:
        self.session_factory = session_factory
        self.manager = manager
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="gamr-review-scheduler")
        log.info("review scheduler started (interval=%ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("review scheduler stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("review scan failed")
            await asyncio.sleep(self.interval_seconds)

    async def run_once(self, *, now: Optional[datetime] = None) -> ScanResult:
        now = now or datetime.now(timezone.utc)

        async with self.session_factory() as db:
            due: List[RiskSheet] = list(
                (
                    await db.execute(
                        select(RiskSheet)
                        .where(
                            RiskSheet.is_archived.is_(False),
                            RiskSheet.review_date.is_not(None),
                            RiskSheet.review_date <= now,
                        )
                        .order_by(RiskSheet.review_date, RiskSheet.id)
                    )
                ).scalars().all()
            )
            critical: List[RiskSheet] = list(
                (
                    await db.execute(
                        select(RiskSheet)
                        .where(
                            RiskSheet.is_archived.is_(False),
                            RiskSheet.priority == Priority.CRITICAL.value,
                        )
                        .order_by(RiskSheet.risk_score.desc(), RiskSheet.id)
                    )
                ).scalars().all()
            )

        for sheet in due:
            await self.manager.publish("REVIEW_DUE", _summary(sheet), tenant_id=sheet.tenant_id)
        for sheet in critical:
            await self.manager.publish("RISK_CRITICAL", _summary(sheet), tenant_id=sheet.tenant_id)

        if due or critical:
            log.info("review scan", extra={"count": len(due) + len(critical)})
        return ScanResult(review_due=len(due), critical=len(critical))
