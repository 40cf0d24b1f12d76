from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from gamr.core.request_id import get_request_id

"""
Core Realtime (WebSocket).

Rôle (fonctionnel) :
- Gère les connexions WebSocket actives du front (tableau de bord GAMR).
- Diffuse des événements métier avec une enveloppe stable :
  {"type": ..., "ts": ..., "tenant_id": ..., "request_id": ..., "data": {...}}
  ex : RISK_SHEET_CREATED, RISK_SHEET_UPDATED, CORRELATION_CHANGED, REVIEW_DUE, RISK_CRITICAL.
- Connexions rangées par tenant : publish() n’envoie qu’aux clients du tenant de l’événement.
- Le manager est instancié au démarrage et porté par app.state.events (pas de singleton module).

Notes :
- Best-effort : un échec d’envoi ne fait jamais échouer l’écriture qui l’a déclenché.
- Purge automatique des connexions mortes.
"""

logger = logging.getLogger("gamr.realtime")


def event_envelope(event_type: str, data: Dict[str, Any], *, tenant_id: Optional[str] = None) -> Dict[str, Any]:
    """Construit l’enveloppe JSON-compatible d’un événement (UUID/datetime encodés)."""
    return jsonable_encoder(
        {
            "type": event_type,
            "ts": datetime.now(timezone.utc).isoformat(),
            "tenant_id": tenant_id,
            "request_id": get_request_id(),
            "data": data,
        }
    )


class ConnectionManager:
    """Connexions WebSocket regroupées par tenant : un événement ne sort jamais de son tenant."""

    def __init__(self) -> None:
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    def count(self, tenant_id: Optional[str] = None) -> int:
        if tenant_id is not None:
            return len(self._connections.get(tenant_id, ()))
        return sum(len(conns) for conns in self._connections.values())

    async def connect(self, ws: WebSocket, *, tenant_id: str) -> None:
        await ws.accept()
        async with self._lock:
            self._connections.setdefault(tenant_id, set()).add(ws)
        logger.info("WS connected", extra={"tenant_id": tenant_id, "count": self.count()})

    async def disconnect(self, ws: WebSocket, *, tenant_id: str) -> None:
        async with self._lock:
            self._discard(ws, tenant_id)
        logger.info("WS disconnected", extra={"tenant_id": tenant_id, "count": self.count()})

    def _discard(self, ws: WebSocket, tenant_id: str) -> None:
        conns = self._connections.get(tenant_id)
        if conns is None:
            return
        conns.discard(ws)
        if not conns:
            del self._connections[tenant_id]

    async def broadcast_json(self, payload: Dict[str, Any], *, tenant_id: str) -> int:
        """Diffuse un payload aux connexions du tenant ; retourne le nombre d’envois réussis."""
        async with self._lock:
            conns = list(self._connections.get(tenant_id, ()))

        if not conns:
            return 0

        dead: list[WebSocket] = []
        for ws in conns:
            try:
                await ws.send_json(payload)
            except Exception:
                dead.append(ws)

        if dead:
            async with self._lock:
                for ws in dead:
                    self._discard(ws, tenant_id)
            logger.info("WS purged dead connections", extra={"tenant_id": tenant_id, "count": len(dead)})

        return len(conns) - len(dead)

    async def publish(self, event_type: str, data: Dict[str, Any], *, tenant_id: str) -> int:
        return await self.broadcast_json(event_envelope(event_type, data, tenant_id=tenant_id), tenant_id=tenant_id)

    async def close_all(self) -> None:
        async with self._lock:
            conns = [ws for group in self._connections.values() for ws in group]
            self._connections.clear()

        for ws in conns:
            try:
                await ws.close()
            except Exception:
                logger.debug("WS close failed", exc_info=True)
