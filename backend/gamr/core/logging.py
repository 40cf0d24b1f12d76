from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .request_id import get_request_id

"""
Core Logging.

Rôle (fonctionnel) :
- Configure un logging JSON uniforme pour l’API GAMR (application + uvicorn).
- Injecte le request_id dans chaque log pour corréler les événements d’une même requête.
- Supporte des “extras” structurés : HTTP (method, path, status_code, duration_ms, client_ip)
  et métier (tenant_id, actor, risk_sheet_id, correlation_id, old_score, new_score, priority…).
"""

# Extras reconnus (logger.info(..., extra={...}))
STRUCTURED_EXTRAS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
    "tenant_id",
    "actor",
    "risk_sheet_id",
    "correlation_id",
    "correlation_type",
    "coefficient",
    "old_score",
    "new_score",
    "priority",
    "count",
)


class RequestIdFilter(logging.Filter):
    """Ajoute request_id au LogRecord (valeur '-' si absent)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """1 événement = 1 ligne JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "msg": record.getMessage(),
        }

        for key in STRUCTURED_EXTRAS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """
    Initialise le root logger en JSON (stdout) et aligne uvicorn dessus.

    Les handlers existants sont retirés pour éviter les doublons avec --reload.
    """
    lvl = level.upper()

    root = logging.getLogger()
    root.setLevel(lvl)

    if root.handlers:
        root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers = root.handlers
        logger.setLevel(lvl)
