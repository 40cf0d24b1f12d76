from __future__ import annotations

import re
import secrets
from typing import Optional

from starlette.requests import HTTPConnection

from gamr.core.settings import settings
from gamr.core.errors import AppHTTPException

"""
Core Security (API Key + tenant).

Rôle (fonctionnel) :
- Authentification simple par API key sur les routes d’écriture et le canal WebSocket :
  - Authorization: Bearer <token>
  - X-API-Key: <token>
  - ?api_key=<token> (WebSocket uniquement, le navigateur ne pose pas d’en-têtes)
- Résolution du tenant courant (isolation multi-tenant) via l’en-tête X-Tenant-Id
  (ou ?tenant=<slug> pour le WebSocket).

Comportement API key :
- API_KEY configurée : clé requise.
- API_KEY vide et ENV != prod : bypass (dev / local / tests).
- API_KEY vide et ENV = prod : erreur 500 (configuration serveur invalide).
"""

_TENANT_RE = re.compile(r"^[a-z0-9][a-z0-9_\-]{0,63}$")


def _is_websocket(conn: HTTPConnection) -> bool:
    return conn.scope.get("type") == "websocket"


def _extract_token(conn: HTTPConnection) -> Optional[str]:
    auth = conn.headers.get("authorization")
    if auth:
        parts = auth.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()

    x_api_key = conn.headers.get("x-api-key")
    if x_api_key:
        return x_api_key.strip()

    if _is_websocket(conn):
        return (conn.query_params.get("api_key") or "").strip() or None

    return None


async def require_api_key(conn: HTTPConnection) -> None:
    """Dépendance FastAPI : lève AppHTTPException si la clé est absente ou invalide."""
    expected = settings.API_KEY or ""

    if not expected:
        if str(settings.ENV).lower() == "prod":
            raise AppHTTPException(500, "SERVER_MISCONFIG", "API_KEY manquante côté serveur")
        return

    token = _extract_token(conn)
    if not token or not secrets.compare_digest(token, expected):
        raise AppHTTPException(401, "UNAUTHORIZED", "Clé API invalide ou manquante")


def resolve_tenant(conn: HTTPConnection) -> str:
    """
    Tenant de la requête (slug en minuscules).

    - En-tête absent ou vide : DEFAULT_TENANT.
    - Slug invalide : 400 (on ne “devine” jamais un tenant).
    """
    raw = conn.headers.get("x-tenant-id") or ""
    if not raw.strip() and _is_websocket(conn):
        raw = conn.query_params.get("tenant") or ""
    raw = raw.strip().lower()
    if not raw:
        return settings.DEFAULT_TENANT
    if not _TENANT_RE.match(raw):
        raise AppHTTPException(400, "INVALID_TENANT", "Identifiant de tenant invalide", details={"tenant": raw})
    return raw
