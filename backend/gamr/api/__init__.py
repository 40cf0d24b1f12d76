"""
gamr.api

Couche HTTP : routes FastAPI par domaine, dépendances (auth, tenant, traçabilité), WebSocket.
"""
