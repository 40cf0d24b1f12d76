from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from gamr.core.request_id import get_request_id
from gamr.core.security import require_api_key, resolve_tenant

"""
Dépendances API.

Rôle (fonctionnel) :
- Centralise les dépendances réutilisables sur les routes :
  - protection des écritures via clé API (WriteAuthDep)
  - tenant courant (en-tête X-Tenant-Id)
  - traçabilité : auteur (X-Actor) + request_id
- Publication best-effort des événements temps réel.
"""

log = logging.getLogger("gamr.api")

ACTOR_MAX_LEN = 120


async def require_write_auth(request: Request) -> None:
    await require_api_key(request)


# Dépendance prête à l’emploi pour protéger un endpoint d’écriture
WriteAuthDep = Depends(require_write_auth)


def current_tenant(request: Request) -> str:
    return resolve_tenant(request)


def current_actor(request: Request) -> Optional[str]:
    """Auteur de l’action (X-Actor), tronqué à la taille de la colonne."""
    actor = (request.headers.get("X-Actor") or "").strip()
    return actor[:ACTOR_MAX_LEN] or None


def current_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())


async def safe_publish(request: Request, event_type: str, data: Dict[str, Any], *, tenant_id: str) -> None:
    """Envoie un event WS sans faire échouer l’endpoint si le WS n’est pas disponible."""
    manager = getattr(request.app.state, "events", None)
    if manager is None:
        return
    try:
        await manager.publish(event_type, data, tenant_id=tenant_id)
    except Exception:
        log.warning("ws publish failed", exc_info=True)
