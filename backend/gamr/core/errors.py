from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

from gamr.engine.errors import CoreError, DuplicateEdgeError, EdgeNotFoundError, InvalidInputError

"""
Core Errors.

Rôle (fonctionnel) :
- Standardise le format des erreurs renvoyées par l’API (payload homogène).
- Fournit une exception applicative (AppHTTPException) pour les erreurs levées côté routes.
- Traduit les erreurs du moteur (gamr.engine.errors) en statut HTTP + code stable.

Convention de réponse :
{
  "error": {
    "code": "INVALID_INPUT",
    "message": "probability doit être compris entre 1 et 3",
    "status": 422,
    "request_id": "...",
    "timestamp": "...",
    "details": {"field": "probability", "value": 7}
  }
}
"""


def now_iso() -> str:
    """Timestamp ISO-8601 en UTC (utilisé dans toutes les erreurs)."""
    return datetime.now(timezone.utc).isoformat()


def error_payload(
    *,
    code: str,
    message: str,
    status: int,
    request_id: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Construit un payload d’erreur homogène pour l’API."""
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "status": status,
            "request_id": request_id,
            "timestamp": now_iso(),
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload


def core_error_status(exc: CoreError) -> int:
    """Statut HTTP associé à une erreur moteur."""
    if isinstance(exc, InvalidInputError):
        return 422
    if isinstance(exc, DuplicateEdgeError):
        return 409
    if isinstance(exc, EdgeNotFoundError):
        return 404
    return 400


class AppHTTPException(HTTPException):
    """
    Exception applicative standardisée.

    Exemple :
        raise AppHTTPException(404, "NOT_FOUND", "Fiche de risque introuvable")
    """

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail={"code": code, "message": message, "details": details})
