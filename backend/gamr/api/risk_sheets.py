from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from gamr.api.deps import WriteAuthDep, current_actor, current_request_id, current_tenant, safe_publish
from gamr.core.errors import AppHTTPException
from gamr.db.session import get_db
from gamr.engine.scoring import Priority
from gamr.models.risk_sheet import RiskSheet
from gamr.schemas.dashboard import RiskDashboardOut
from gamr.schemas.risk_sheets import (
    PageMeta,
    RiskSheetCreate,
    RiskSheetEventOut,
    RiskSheetListResponse,
    RiskSheetOut,
    RiskSheetUpdate,
)
from gamr.services.risk_sheet_service import RiskSheetService

"""
API Fiches de risque.

Rôle (fonctionnel) :
- CRUD des fiches d’un tenant (archivage logique à la place de la suppression).
- Score et priorité toujours recalculés côté serveur (jamais acceptés en entrée).
- Historique (events) et agrégats du dashboard.
- Chaque écriture est tracée :
  - en base via risk_sheet_events
  - en logs via request_id/actor
  - en temps réel via WebSocket (si actif)
"""

router = APIRouter(prefix="/risk-sheets", tags=["risk-sheets"])

service = RiskSheetService()


def _not_found(sheet_id: uuid.UUID) -> AppHTTPException:
    return AppHTTPException(404, "NOT_FOUND", "Fiche de risque introuvable", details={"id": str(sheet_id)})


def _event_data(sheet: RiskSheet) -> dict:
    return RiskSheetOut.model_validate(sheet).model_dump(mode="json")


@router.post("", response_model=RiskSheetOut, status_code=201, dependencies=[WriteAuthDep])
async def create_risk_sheet(
    payload: RiskSheetCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    sheet = await service.create(
        db,
        tenant_id,
        payload,
        actor=current_actor(request),
        request_id=current_request_id(request),
    )
    await safe_publish(request, "RISK_SHEET_CREATED", _event_data(sheet), tenant_id=tenant_id)
    return sheet


@router.get("", response_model=RiskSheetListResponse)
async def list_risk_sheets(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = Query(None, max_length=100),
    priority: Optional[Priority] = None,
):
    result = await service.list(
        db,
        tenant_id,
        page=page,
        page_size=page_size,
        search=search,
        category=category,
        priority=priority.value if priority else None,
    )
    return {
        "data": result.items,
        "meta": PageMeta(page=result.page, page_size=result.page_size, total=result.total, pages=result.pages),
    }


@router.get("/stats/dashboard", response_model=RiskDashboardOut)
async def risk_dashboard(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    return await service.dashboard_stats(db, tenant_id)


@router.get("/{sheet_id}", response_model=RiskSheetOut)
async def get_risk_sheet(
    sheet_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    sheet = await service.get(db, tenant_id, sheet_id)
    if sheet is None:
        raise _not_found(sheet_id)
    return sheet


@router.patch("/{sheet_id}", response_model=RiskSheetOut, dependencies=[WriteAuthDep])
async def update_risk_sheet(
    sheet_id: uuid.UUID,
    payload: RiskSheetUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    sheet = await service.update(
        db,
        tenant_id,
        sheet_id,
        payload,
        actor=current_actor(request),
        request_id=current_request_id(request),
    )
    if sheet is None:
        raise _not_found(sheet_id)

    await safe_publish(request, "RISK_SHEET_UPDATED", _event_data(sheet), tenant_id=tenant_id)
    return sheet


@router.delete("/{sheet_id}", status_code=204, dependencies=[WriteAuthDep])
async def archive_risk_sheet(
    sheet_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    sheet = await service.archive(
        db,
        tenant_id,
        sheet_id,
        actor=current_actor(request),
        request_id=current_request_id(request),
    )
    if sheet is None:
        raise _not_found(sheet_id)

    await safe_publish(request, "RISK_SHEET_ARCHIVED", {"id": str(sheet.id)}, tenant_id=tenant_id)
    return Response(status_code=204)


@router.get("/{sheet_id}/events", response_model=List[RiskSheetEventOut])
async def list_risk_sheet_events(
    sheet_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(current_tenant),
):
    events = await service.list_events(db, tenant_id, sheet_id)
    if events is None:
        raise _not_found(sheet_id)
    return events
