from __future__ import annotations

import re
import uuid
from contextvars import ContextVar

"""
Core Request ID.

Rôle (fonctionnel) :
- Identifiant de requête (request_id) stocké dans un ContextVar (1 valeur par requête async).
- Repris depuis l’en-tête X-Request-Id s’il est exploitable, sinon généré (UUID4).
- Corrèle logs JSON, payloads d’erreur et événements d’audit (risk_sheet_events.request_id).

Contraintes :
- 64 caractères max (taille de la colonne d’audit).
- Caractères limités à [A-Za-z0-9._-] : une valeur entrante non conforme est remplacée.
"""

MAX_REQUEST_ID_LENGTH = 64
_VALID_RID = re.compile(r"^[A-Za-z0-9._\-]+$")

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(rid: str | None) -> None:
    _request_id.set(rid)


def get_request_id() -> str | None:
    return _request_id.get()


def _usable(incoming: str | None) -> str | None:
    rid = (incoming or "").strip()
    if not rid or len(rid) > MAX_REQUEST_ID_LENGTH or not _VALID_RID.match(rid):
        return None
    return rid


def ensure_request_id(incoming: str | None = None) -> str:
    """Fixe et retourne le request_id du contexte courant (entrant nettoyé, ou UUID)."""
    rid = _usable(incoming) or str(uuid.uuid4())
    set_request_id(rid)
    return rid
