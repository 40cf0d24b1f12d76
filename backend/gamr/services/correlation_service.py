from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gamr.engine.correlation_graph import (
    CorrelationEdge,
    CorrelationGraph,
    CorrelationType,
    RiskRecord,
)
from gamr.engine.errors import DuplicateEdgeError, EdgeNotFoundError
from gamr.models.risk_correlation import RiskCorrelation
from gamr.models.risk_sheet import RiskSheet
from gamr.models.risk_sheet_event import RiskSheetEvent
from gamr.schemas.correlations import (
    CorrelationCreate,
    CorrelationOut,
    CorrelationStatsOut,
    NetworkEdgeOut,
    NetworkNodeOut,
    NetworkOut,
    TypeCount,
)

"""
Correlation Service.

Rôle (fonctionnel) :
- Persistance des corrélations d’un tenant (table risk_correlations).
- Reconstruit à la demande un snapshot CorrelationGraph depuis la base : toutes les règles
  (boucle, coefficient, type, extrémités, doublon) sont appliquées par le moteur AVANT l’écriture.
- Expose la vue réseau (BFS borné) et les statistiques utilisées par le dashboard.

Transactions :
- 1 commit par opération ; l’événement d’historique est écrit sur la fiche source dans la même
  transaction.
- Course entre deux créations identiques : la contrainte unique (source, cible, type) de la base
  tranche, l’IntegrityError est traduite en DuplicateEdgeError (409).
"""

log = logging.getLogger("gamr.correlations")

TOP_LIMIT = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CorrelationPage:
    items: List[RiskCorrelation]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


class CorrelationService:
    """
    Service des corrélations (graphe + persistance).

    Le graphe n’est jamais conservé entre deux requêtes : chaque opération part de l’état
    courant de la base pour le tenant concerné.
    """

    @staticmethod
    def _tenant_scope(stmt, tenant_id: str):
        # Une corrélation appartient au tenant de sa fiche source
        return stmt.join(RiskSheet, RiskSheet.id == RiskCorrelation.source_risk_id).where(
            RiskSheet.tenant_id == tenant_id
        )

    async def load_graph(self, db: AsyncSession, tenant_id: str) -> CorrelationGraph:
        """Snapshot du graphe du tenant (fiches archivées incluses, arêtes inactives incluses)."""
        sheet_rows = (
            await db.execute(
                select(
                    RiskSheet.id,
                    RiskSheet.probability,
                    RiskSheet.vulnerability,
                    RiskSheet.impact,
                    RiskSheet.category,
                    RiskSheet.is_archived,
                ).where(RiskSheet.tenant_id == tenant_id)
            )
        ).all()

        edge_stmt = self._tenant_scope(
            select(
                RiskCorrelation.id,
                RiskCorrelation.source_risk_id,
                RiskCorrelation.target_risk_id,
                RiskCorrelation.coefficient,
                RiskCorrelation.correlation_type,
                RiskCorrelation.is_active,
            ),
            tenant_id,
        )
        edge_rows = (await db.execute(edge_stmt)).all()

        return CorrelationGraph(
            risks=(
                RiskRecord(
                    id=r.id,
                    probability=r.probability,
                    vulnerability=r.vulnerability,
                    impact=r.impact,
                    category=r.category,
                    is_archived=r.is_archived,
                )
                for r in sheet_rows
            ),
            edges=(
                CorrelationEdge(
                    id=e.id,
                    source_risk_id=e.source_risk_id,
                    target_risk_id=e.target_risk_id,
                    coefficient=e.coefficient,
                    correlation_type=CorrelationType(e.correlation_type),
                    is_active=e.is_active,
                )
                for e in edge_rows
            ),
        )

    async def _load_row(self, db: AsyncSession, tenant_id: str, correlation_id: uuid.UUID) -> RiskCorrelation:
        stmt = self._tenant_scope(select(RiskCorrelation), tenant_id).where(RiskCorrelation.id == correlation_id)
        row = (await db.execute(stmt.execution_options(populate_existing=True))).scalars().first()
        if row is None:
            raise EdgeNotFoundError("Corrélation introuvable", details={"correlation_id": str(correlation_id)})
        return row

    def _event(
        self,
        row: RiskCorrelation,
        event_type: str,
        message: str,
        *,
        actor: Optional[str],
        request_id: Optional[str],
        now: datetime,
    ) -> RiskSheetEvent:
        return RiskSheetEvent(
            risk_sheet_id=row.source_risk_id,
            event_type=event_type,
            message=message,
            actor=actor,
            request_id=request_id,
            created_at=now,
        )

    async def add(
        self,
        db: AsyncSession,
        tenant_id: str,
        payload: CorrelationCreate,
        *,
        actor: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> RiskCorrelation:
        graph = await self.load_graph(db, tenant_id)
        edge = graph.add_edge(
            payload.source_risk_id,
            payload.target_risk_id,
            payload.coefficient,
            payload.correlation_type,
        )

        now = _now()
        row = await db.get(RiskCorrelation, edge.id)
        if row is None:
            row = RiskCorrelation(
                id=edge.id,
                source_risk_id=edge.source_risk_id,
                target_risk_id=edge.target_risk_id,
                coefficient=edge.coefficient,
                correlation_type=edge.correlation_type.value,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            event_type = "CORRELATION_ADDED"
        else:
            row.coefficient = edge.coefficient
            row.is_active = True
            row.updated_at = now
            event_type = "CORRELATION_REACTIVATED"

        db.add(
            self._event(
                row,
                event_type,
                f"{edge.correlation_type.value} -> {edge.target_risk_id} (coefficient {edge.coefficient:.2f})",
                actor=actor,
                request_id=request_id,
                now=now,
            )
        )

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise DuplicateEdgeError(
                "Une corrélation existe déjà pour ces risques et ce type",
                details={
                    "source_risk_id": str(edge.source_risk_id),
                    "target_risk_id": str(edge.target_risk_id),
                    "correlation_type": edge.correlation_type.value,
                },
            ) from None

        log.info(
            "correlation_added" if event_type == "CORRELATION_ADDED" else "correlation_reactivated",
            extra={
                "tenant_id": tenant_id,
                "actor": actor,
                "correlation_id": str(edge.id),
                "correlation_type": edge.correlation_type.value,
                "coefficient": edge.coefficient,
                "risk_sheet_id": str(edge.source_risk_id),
            },
        )
        return await self._load_row(db, tenant_id, edge.id)

    async def deactivate(
        self,
        db: AsyncSession,
        tenant_id: str,
        correlation_id: uuid.UUID,
        *,
        actor: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> RiskCorrelation:
        """Désactivation (pas de suppression). Déjà inactive : renvoyée telle quelle, sans événement."""
        graph = await self.load_graph(db, tenant_id)
        was_active = graph.edge(correlation_id).is_active
        graph.deactivate(correlation_id)

        row = await self._load_row(db, tenant_id, correlation_id)
        if not was_active:
            return row

        now = _now()
        row.is_active = False
        row.updated_at = now
        db.add(self._event(row, "CORRELATION_DEACTIVATED", "Corrélation désactivée", actor=actor, request_id=request_id, now=now))
        await db.commit()

        log.info(
            "correlation_deactivated",
            extra={"tenant_id": tenant_id, "actor": actor, "correlation_id": str(correlation_id)},
        )
        return await self._load_row(db, tenant_id, correlation_id)

    async def update_coefficient(
        self,
        db: AsyncSession,
        tenant_id: str,
        correlation_id: uuid.UUID,
        coefficient: float,
        *,
        actor: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> RiskCorrelation:
        graph = await self.load_graph(db, tenant_id)
        old = graph.edge(correlation_id).coefficient
        edge = graph.update_coefficient(correlation_id, coefficient)

        row = await self._load_row(db, tenant_id, correlation_id)
        now = _now()
        row.coefficient = edge.coefficient
        row.updated_at = now
        db.add(
            self._event(
                row,
                "CORRELATION_UPDATED",
                f"coefficient: {old:.2f} -> {edge.coefficient:.2f}",
                actor=actor,
                request_id=request_id,
                now=now,
            )
        )
        await db.commit()

        log.info(
            "correlation_updated",
            extra={
                "tenant_id": tenant_id,
                "actor": actor,
                "correlation_id": str(correlation_id),
                "coefficient": edge.coefficient,
            },
        )
        return await self._load_row(db, tenant_id, correlation_id)

    async def list(
        self,
        db: AsyncSession,
        tenant_id: str,
        *,
        page: int = 1,
        page_size: int = 20,
        correlation_type: Optional[CorrelationType] = None,
        min_coefficient: Optional[float] = None,
        source_risk_id: Optional[uuid.UUID] = None,
        target_risk_id: Optional[uuid.UUID] = None,
        active: Optional[bool] = True,
    ) -> CorrelationPage:
        """Liste filtrée ; active=None renvoie actives et inactives."""
        filters = []
        if correlation_type is not None:
            filters.append(RiskCorrelation.correlation_type == CorrelationType(correlation_type).value)
        if min_coefficient is not None:
            filters.append(RiskCorrelation.coefficient >= min_coefficient)
        if source_risk_id is not None:
            filters.append(RiskCorrelation.source_risk_id == source_risk_id)
        if target_risk_id is not None:
            filters.append(RiskCorrelation.target_risk_id == target_risk_id)
        if active is not None:
            filters.append(RiskCorrelation.is_active.is_(active))

        count_stmt = self._tenant_scope(select(func.count(RiskCorrelation.id)), tenant_id).where(*filters)
        total = (await db.execute(count_stmt)).scalar_one()

        stmt = (
            self._tenant_scope(select(RiskCorrelation), tenant_id)
            .where(*filters)
            .order_by(desc(RiskCorrelation.coefficient), RiskCorrelation.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        items = list((await db.execute(stmt)).scalars().all())
        return CorrelationPage(items=items, total=int(total), page=page, page_size=page_size)

    async def _rows_in_order(self, db: AsyncSession, ids: List[uuid.UUID]) -> List[RiskCorrelation]:
        if not ids:
            return []
        rows = (await db.execute(select(RiskCorrelation).where(RiskCorrelation.id.in_(ids)))).scalars().all()
        by_id = {r.id: r for r in rows}
        return [by_id[i] for i in ids if i in by_id]

    async def top(self, db: AsyncSession, tenant_id: str, n: int = TOP_LIMIT) -> List[RiskCorrelation]:
        """Les n corrélations vivantes les plus fortes du tenant."""
        graph = await self.load_graph(db, tenant_id)
        return await self._rows_in_order(db, [e.id for e in graph.top_correlated(n)])

    async def network(
        self,
        db: AsyncSession,
        tenant_id: str,
        risk_id: uuid.UUID,
        *,
        depth: int,
        min_coefficient: float,
    ) -> NetworkOut:
        graph = await self.load_graph(db, tenant_id)
        view = graph.network_around(risk_id, depth, min_coefficient)

        sheets: Dict[uuid.UUID, RiskSheet] = {}
        if view.nodes:
            rows = (await db.execute(select(RiskSheet).where(RiskSheet.id.in_(view.node_ids)))).scalars().all()
            sheets = {s.id: s for s in rows}

        nodes = []
        for node in view.nodes:
            sheet = sheets[node.id]
            nodes.append(
                NetworkNodeOut(
                    id=sheet.id,
                    target=sheet.target,
                    scenario=sheet.scenario,
                    category=sheet.category,
                    priority=sheet.priority,
                    risk_score=sheet.risk_score,
                    is_archived=sheet.is_archived,
                    level=node.level,
                )
            )

        return NetworkOut(
            nodes=nodes,
            edges=[
                NetworkEdgeOut(
                    id=e.id,
                    source=e.source_risk_id,
                    target=e.target_risk_id,
                    coefficient=e.coefficient,
                    type=e.correlation_type.value,
                )
                for e in view.edges
            ],
            center_node=view.center_node,
        )

    async def stats(self, db: AsyncSession, tenant_id: str) -> CorrelationStatsOut:
        graph = await self.load_graph(db, tenant_id)
        s = graph.stats()
        top_rows = await self._rows_in_order(db, [e.id for e in graph.top_correlated(TOP_LIMIT)])

        return CorrelationStatsOut(
            total_correlations=s.total_edges,
            strong_correlations=s.strong_edges,
            average_coefficient=round(s.average_coefficient, 4),
            correlations_by_type=[TypeCount(type=t.value, count=c) for t, c in s.by_type.items()],
            top_correlated_risks=[CorrelationOut.model_validate(r) for r in top_rows],
        )
