import logging
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from gamr.core.errors import AppHTTPException
from gamr.core.security import require_api_key, resolve_tenant

"""
API Realtime (WebSocket).

Rôle (fonctionnel) :
- Canal WebSocket /ws/events : pousse les événements métier vers le front
  (fiches, corrélations, revues échues, risques critiques).
- Le client ne reçoit que les événements de son tenant (X-Tenant-Id ou ?tenant=).
- Clé API exigée à la connexion lorsqu’elle est configurée (en-têtes ou ?api_key=).
- Best-effort : si le manager n’est pas initialisé (app.state.events), la connexion est refusée.

Notes :
- Le client peut envoyer "PING" -> réponse "PONG".
"""

log = logging.getLogger("gamr.realtime")

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/events")
async def ws_events(ws: WebSocket):
    manager = getattr(ws.app.state, "events", None)
    if manager is None:
        await ws.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    try:
        await require_api_key(ws)
        tenant_id = resolve_tenant(ws)
    except AppHTTPException as exc:
        log.info("WS refused", extra={"status_code": exc.status_code})
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(ws, tenant_id=tenant_id)

    # Ack de connexion (utile côté UI)
    await ws.send_json({"type": "WS_CONNECTED", "tenant_id": tenant_id, "ts": datetime.now(timezone.utc).isoformat()})

    try:
        while True:
            msg = await ws.receive_text()
            if msg.strip().upper() == "PING":
                await ws.send_json({"type": "PONG", "ts": datetime.now(timezone.utc).isoformat()})
    except WebSocketDisconnect:
        await manager.disconnect(ws, tenant_id=tenant_id)
    except Exception:
        await manager.disconnect(ws, tenant_id=tenant_id)
