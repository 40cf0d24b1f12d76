from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gamr.core.settings import settings
from gamr.engine.scoring import Priority, average_to_percent, compute_score
from gamr.models.risk_sheet import RiskSheet
from gamr.models.risk_sheet_event import RiskSheetEvent
from gamr.schemas.dashboard import CategoryCount, RiskDashboardOut
from gamr.schemas.risk_sheets import RiskSheetCreate, RiskSheetUpdate

"""
Risk Sheet Service.

Rôle (fonctionnel) :
- Cycle de vie des fiches de risque d’un tenant : création, lecture, liste, mise à jour, archivage.
- Appelle gamr.engine.scoring à CHAQUE écriture : score brut + priorité ne sont jamais fournis
  par le client, toujours recalculés depuis (probabilité, vulnérabilité, impact).
- Écrit l’historique (risk_sheet_events) dans la même transaction que la modification.
- Calcule les agrégats du dashboard (compteurs par priorité / catégorie, score moyen).

Erreurs :
- InvalidInputError (moteur) remonte telle quelle : rien n’est persisté.
- Fiche absente / archivée / autre tenant : None (la route renvoie 404).
"""

log = logging.getLogger("gamr.risk_sheets")

RECENT_DAYS = 30


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RiskSheetPage:
    items: List[RiskSheet]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


class RiskSheetService:
    """
    Service des fiches de risque (persistance + scoring).

    Responsabilités :
    - Calcul du score via le moteur (pur) avant toute écriture
    - Versionnement (+1 à chaque mise à jour) et date de revue (création + REVIEW_PERIOD_DAYS)
    - Audit trail (CREATED / UPDATED / ARCHIVED)
    """

    def __init__(self, *, review_period_days: Optional[int] = None) -> None:
        self.review_period_days = review_period_days if review_period_days is not None else settings.REVIEW_PERIOD_DAYS

    async def get(self, db: AsyncSession, tenant_id: str, sheet_id: uuid.UUID) -> Optional[RiskSheet]:
        stmt = select(RiskSheet).where(
            RiskSheet.id == sheet_id,
            RiskSheet.tenant_id == tenant_id,
            RiskSheet.is_archived.is_(False),
        )
        return (await db.execute(stmt)).scalars().first()

    async def list(
        self,
        db: AsyncSession,
        tenant_id: str,
        *,
        page: int = 1,
        page_size: int = 20,
        search: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> RiskSheetPage:
        filters = [RiskSheet.tenant_id == tenant_id, RiskSheet.is_archived.is_(False)]

        if search:
            pattern = f"%{search.strip().lower()}%"
            filters.append(
                or_(
                    func.lower(RiskSheet.target).like(pattern),
                    func.lower(RiskSheet.scenario).like(pattern),
                    func.lower(RiskSheet.category).like(pattern),
                )
            )
        if category:
            filters.append(RiskSheet.category == category)
        if priority:
            filters.append(RiskSheet.priority == priority)

        total = (await db.execute(select(func.count(RiskSheet.id)).where(*filters))).scalar_one()

        stmt = (
            select(RiskSheet)
            .where(*filters)
            .order_by(desc(RiskSheet.created_at), RiskSheet.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        items = list((await db.execute(stmt)).scalars().all())
        return RiskSheetPage(items=items, total=int(total), page=page, page_size=page_size)

    async def create(
        self,
        db: AsyncSession,
        tenant_id: str,
        payload: RiskSheetCreate,
        *,
        actor: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> RiskSheet:
        # Validation + calcul avant toute écriture (InvalidInputError -> rien n’est persisté)
        result = compute_score(payload.probability, payload.vulnerability, payload.impact)
        now = _now()

        sheet = RiskSheet(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            target=payload.target,
            scenario=payload.scenario,
            category=payload.category,
            probability=payload.probability,
            vulnerability=payload.vulnerability,
            impact=payload.impact,
            risk_score=result.raw_score,
            priority=result.priority.value,
            version=1,
            author=actor,
            review_date=now + timedelta(days=self.review_period_days),
            is_archived=False,
            created_at=now,
            updated_at=now,
        )
        db.add(sheet)
        db.add(
            RiskSheetEvent(
                risk_sheet_id=sheet.id,
                event_type="CREATED",
                old_score=None,
                new_score=result.raw_score,
                message=f"Fiche créée (priorité {result.priority.value})",
                actor=actor,
                request_id=request_id,
                created_at=now,
            )
        )

        await db.commit()
        await db.refresh(sheet)

        log.info(
            "risk_sheet_created",
            extra={
                "tenant_id": tenant_id,
                "actor": actor,
                "risk_sheet_id": str(sheet.id),
                "new_score": sheet.risk_score,
                "priority": sheet.priority,
            },
        )
        return sheet

    async def update(
        self,
        db: AsyncSession,
        tenant_id: str,
        sheet_id: uuid.UUID,
        payload: RiskSheetUpdate,
        *,
        actor: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Optional[RiskSheet]:
        sheet = await self.get(db, tenant_id, sheet_id)
        if sheet is None:
            return None

        changes = payload.model_dump(exclude_unset=True)

        # Score recalculé sur les valeurs fusionnées, avant de toucher à l’objet
        result = compute_score(
            changes.get("probability", sheet.probability),
            changes.get("vulnerability", sheet.vulnerability),
            changes.get("impact", sheet.impact),
        )

        old_score = sheet.risk_score
        old_priority = sheet.priority

        for field, value in changes.items():
            setattr(sheet, field, value)

        now = _now()
        sheet.risk_score = result.raw_score
        sheet.priority = result.priority.value
        sheet.version = sheet.version + 1
        sheet.updated_at = now

        message = f"score: {old_score} -> {result.raw_score}"
        if old_priority != sheet.priority:
            message += f" ; priorité: {old_priority} -> {sheet.priority}"

        db.add(
            RiskSheetEvent(
                risk_sheet_id=sheet.id,
                event_type="UPDATED",
                old_score=old_score,
                new_score=result.raw_score,
                message=message,
                actor=actor,
                request_id=request_id,
                created_at=now,
            )
        )

        await db.commit()
        await db.refresh(sheet)

        log.info(
            "risk_sheet_updated",
            extra={
                "tenant_id": tenant_id,
                "actor": actor,
                "risk_sheet_id": str(sheet.id),
                "old_score": old_score,
                "new_score": sheet.risk_score,
                "priority": sheet.priority,
            },
        )
        return sheet

    async def archive(
        self,
        db: AsyncSession,
        tenant_id: str,
        sheet_id: uuid.UUID,
        *,
        actor: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Optional[RiskSheet]:
        """Archivage logique : les corrélations restent en base mais sortent des parcours."""
        sheet = await self.get(db, tenant_id, sheet_id)
        if sheet is None:
            return None

        now = _now()
        sheet.is_archived = True
        sheet.updated_at = now

        db.add(
            RiskSheetEvent(
                risk_sheet_id=sheet.id,
                event_type="ARCHIVED",
                old_score=sheet.risk_score,
                new_score=sheet.risk_score,
                message="Fiche archivée",
                actor=actor,
                request_id=request_id,
                created_at=now,
            )
        )

        await db.commit()
        await db.refresh(sheet)

        log.info(
            "risk_sheet_archived",
            extra={"tenant_id": tenant_id, "actor": actor, "risk_sheet_id": str(sheet.id)},
        )
        return sheet

    async def list_events(
        self,
        db: AsyncSession,
        tenant_id: str,
        sheet_id: uuid.UUID,
    ) -> Optional[List[RiskSheetEvent]]:
        """Historique d’une fiche (y compris archivée) ; None si la fiche n’existe pas pour ce tenant."""
        owner = (
            await db.execute(
                select(RiskSheet.id).where(RiskSheet.id == sheet_id, RiskSheet.tenant_id == tenant_id)
            )
        ).scalar_one_or_none()
        if owner is None:
            return None

        stmt = (
            select(RiskSheetEvent)
            .where(RiskSheetEvent.risk_sheet_id == sheet_id)
            .order_by(RiskSheetEvent.created_at, RiskSheetEvent.id)
        )
        return list((await db.execute(stmt)).scalars().all())

    async def dashboard_stats(self, db: AsyncSession, tenant_id: str) -> RiskDashboardOut:
        live = [RiskSheet.tenant_id == tenant_id, RiskSheet.is_archived.is_(False)]

        total = int((await db.execute(select(func.count(RiskSheet.id)).where(*live))).scalar() or 0)

        prio_rows = (
            await db.execute(
                select(RiskSheet.priority, func.count(RiskSheet.id)).where(*live).group_by(RiskSheet.priority)
            )
        ).all()
        by_priority: Dict[str, int] = {p.value: 0 for p in Priority}
        for prio, cnt in prio_rows:
            by_priority[str(prio)] = int(cnt)

        since = _now() - timedelta(days=RECENT_DAYS)
        recent = int(
            (await db.execute(select(func.count(RiskSheet.id)).where(*live, RiskSheet.created_at >= since))).scalar()
            or 0
        )

        cat_rows: List[Tuple[Optional[str], int]] = (
            await db.execute(
                select(RiskSheet.category, func.count(RiskSheet.id))
                .where(*live)
                .group_by(RiskSheet.category)
                .order_by(desc(func.count(RiskSheet.id)), RiskSheet.category)
            )
        ).all()

        avg = (await db.execute(select(func.avg(RiskSheet.risk_score)).where(*live))).scalar()
        avg_f = round(float(avg), 2) if avg is not None else None

        return RiskDashboardOut(
            total_risks=total,
            critical_risks=by_priority[Priority.CRITICAL.value],
            high_risks=by_priority[Priority.HIGH.value],
            recent_risks=recent,
            risks_by_priority=by_priority,
            risks_by_category=[CategoryCount(category=c, count=int(n)) for c, n in cat_rows],
            average_score=avg_f,
            average_score_percent=average_to_percent(avg_f) if avg_f is not None else None,
        )
