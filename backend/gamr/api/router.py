from fastapi import APIRouter

from .health import router as health_router

from gamr.api.correlations import router as correlations_router
from gamr.api.risk_sheets import router as risk_sheets_router
from gamr.api.status import router as status_router

"""
Router principal de l’API.

Rôle (fonctionnel) :
- Regroupe les routeurs par domaine (health, fiches de risque, corrélations, statut système).
- Point d’entrée unique pour l’inclusion dans l’application FastAPI (le WebSocket est inclus à part).
"""

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(risk_sheets_router)
api_router.include_router(correlations_router)
api_router.include_router(status_router)
