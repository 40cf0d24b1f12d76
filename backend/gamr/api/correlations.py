from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from gamr.api.deps import WriteAuthDep, current_actor, current_request_id, current_tenant, safe_publish
from gamr.core.settings import settings
from gamr.db.session import get_db
from gamr.engine.correlation_graph import CorrelationType
from gamr.models.risk_correlation import RiskCorrelation
from gamr.schemas.correlations import (
    CorrelationCreate,
    CorrelationListResponse,
    CorrelationOut,
    CorrelationPatch,
    CorrelationStatsOut,
    NetworkOut,
)
from gamr.schemas.risk_sheets import PageMeta
from gamr.services.correlation_service import TOP_LIMIT, CorrelationService

"""
API Corrélations.

Rôle (fonctionnel) :
- Gestion des arêtes du graphe de corrélations (création / réactivation, coefficient, désactivation).
- Vue réseau autour d’un risque (visualisation) : {nodes, edges, center_node}.
- Statistiques et top corrélations.

Erreurs (traduites par les handlers de gamr.main) :
- contrainte du graphe violée -> 400 VALIDATION_ERROR
- doublon actif -> 409 DUPLICATE_CORRELATION
- corrélation inconnue -> 404 NOT_FOUND
"""

router = APIRouter(prefix="/correlations", tags=["correlations"])

service = CorrelationService()


async def _changed(request: Request, action: str, row: RiskCorrelation, tenant_id: str) -> None:
    data = CorrelationOut.model_validate(row).model_dump(mode="json", exclude={"source_risk", "target_risk"})
    await safe_publish(request, "CORRELATION_CHANGED", {"action": action, "correlation": data}, tenant_id=tenant_id)


@router.get("", response_model=CorrelationListResponse)
async def list_correlations(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    correlation_type: Optional[CorrelationType] = None,
    min_coefficient: Optional[float] = Query(None, ge=0.0, le=1.0),
    source_risk_id: Optional[uuid.UUID] = None,
    target_risk_id: Optional[uuid.UUID] = None,
    active: str = Query("true", pattern="^(true|false|all)$"),
):
    result = await service.list(
        db,
        tenant_id,
        page=page,
        page_size=page_size,
        correlation_type=correlation_type,
        min_coefficient=min_coefficient,
        source_risk_id=source_risk_id,
        target_risk_id=target_risk_id,
        active=None if active == "all" else active == "true",
    )
    return {
        "data": result.items,
        "meta": PageMeta(page=result.page, page_size=result.page_size, total=result.total, pages=result.pages),
    }


@router.post("", response_model=CorrelationOut, status_code=201, dependencies=[WriteAuthDep])
async def create_correlation(
    payload: CorrelationCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    row = await service.add(
        db,
        tenant_id,
        payload,
        actor=current_actor(request),
        request_id=current_request_id(request),
    )
    await _changed(request, "ADDED", row, tenant_id)
    return row


@router.get("/stats", response_model=CorrelationStatsOut)
async def correlation_stats(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    return await service.stats(db, tenant_id)


@router.get("/top", response_model=List[CorrelationOut])
async def top_correlations(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
    limit: int = Query(TOP_LIMIT, ge=1, le=100),
):
    return await service.top(db, tenant_id, limit)


@router.get("/network/{risk_id}", response_model=NetworkOut)
async def correlation_network(
    risk_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
    depth: int = Query(settings.NETWORK_DEFAULT_DEPTH, ge=0, le=settings.NETWORK_MAX_DEPTH),
    min_coefficient: float = Query(settings.NETWORK_DEFAULT_MIN_COEFFICIENT, ge=0.0, le=1.0),
):
    return await service.network(db, tenant_id, risk_id, depth=depth, min_coefficient=min_coefficient)


@router.patch("/{correlation_id}", response_model=CorrelationOut, dependencies=[WriteAuthDep])
async def update_correlation(
    correlation_id: uuid.UUID,
    payload: CorrelationPatch,
    request: Request,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    row = await service.update_coefficient(
        db,
        tenant_id,
        correlation_id,
        payload.coefficient,
        actor=current_actor(request),
        request_id=current_request_id(request),
    )
    await _changed(request, "UPDATED", row, tenant_id)
    return row


@router.delete("/{correlation_id}", response_model=CorrelationOut, dependencies=[WriteAuthDep])
async def deactivate_correlation(
    correlation_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    row = await service.deactivate(
        db,
        tenant_id,
        correlation_id,
        actor=current_actor(request),
        request_id=current_request_id(request),
    )
    await _changed(request, "DEACTIVATED", row, tenant_id)
    return row
