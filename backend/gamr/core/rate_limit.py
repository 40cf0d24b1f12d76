from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Tuple

from fastapi import Request

from gamr.core.errors import AppHTTPException
from gamr.core.settings import settings

"""
Core Rate Limit.

Rôle (fonctionnel) :
- Limite les rafales d’écritures (création / modification / archivage de fiches et corrélations).
- In-memory, fenêtre fixe de 60 secondes, clé = (tenant, IP, "METHOD /préfixe").
- Les lectures (GET/HEAD/OPTIONS) ne sont jamais limitées.

Activation via settings :
- RATE_LIMIT_ENABLED : active/désactive.
- RATE_LIMIT_RPM : nombre d’écritures par minute et par clé.
"""

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
WINDOW_SECONDS = 60.0


@dataclass
class _Bucket:
    window_start: float
    count: int


class InMemoryRateLimiter:
    """Compteur par clé sur fenêtre fixe ; AppHTTPException(429) au-delà de la limite."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._buckets: Dict[Tuple[str, str, str], _Bucket] = {}

    @staticmethod
    def _route_key(request: Request) -> str:
        # Regroupe /risk-sheets/<id> et /risk-sheets sous le même préfixe
        parts = [p for p in request.url.path.split("/") if p]
        prefix = parts[0] if parts else ""
        return f"{request.method} /{prefix}"

    def check(self, request: Request) -> None:
        if not settings.RATE_LIMIT_ENABLED or request.method not in WRITE_METHODS:
            return

        limit = int(settings.RATE_LIMIT_RPM or 0)
        if limit <= 0:
            return

        tenant = (request.headers.get("x-tenant-id") or settings.DEFAULT_TENANT).strip().lower()
        ip = request.client.host if request.client else "unknown"
        key = (tenant, ip, self._route_key(request))
        now = time.monotonic()

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or (now - bucket.window_start) >= WINDOW_SECONDS:
                self._buckets[key] = _Bucket(window_start=now, count=1)
                return

            bucket.count += 1
            if bucket.count > limit:
                raise AppHTTPException(
                    429,
                    "RATE_LIMITED",
                    f"Trop de requêtes (limite: {limit}/min).",
                    details={"limit_rpm": limit},
                )

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


rate_limiter = InMemoryRateLimiter()
