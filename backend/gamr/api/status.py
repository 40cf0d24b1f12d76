from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from gamr.core.settings import settings
from gamr.db.session import get_db
from gamr.models.risk_sheet import RiskSheet

"""
API System Status.

Rôle (fonctionnel) :
- Statut “healthcheck” de la plateforme pour le monitoring / l’UI.
- Vérifie la disponibilité de la base (requête simple).
- Expose l’état du planificateur de revues et le nombre de clients WebSocket.
- Fournit une information de fraîcheur via la dernière modification de fiche.
"""

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def system_status(request: Request, db: AsyncSession = Depends(get_db)):
    # 1) DB check (requête minimale)
    db_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        db_ok = False

    # 2) Dernière modification de fiche (tous tenants)
    last_update = None
    if db_ok:
        try:
            value = (await db.execute(select(func.max(RiskSheet.updated_at)))).scalar()
            last_update = value.isoformat() if value else None
        except Exception:
            last_update = None

    scheduler = getattr(request.app.state, "review_scheduler", None)
    events = getattr(request.app.state, "events", None)

    return {
        "ok": db_ok,
        "db": {"ok": db_ok},
        "review_scheduler": {
            "enabled": settings.REVIEW_SCAN_ENABLED,
            "running": bool(scheduler and scheduler.running),
        },
        "ws_clients": events.count() if events is not None else 0,
        "last_update": last_update,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
