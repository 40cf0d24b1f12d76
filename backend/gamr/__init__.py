"""
gamr

Package racine du backend GAMR (gestion et analyse des menaces et des risques).

Organisation :
- gamr.engine   : moteur pur (scoring probabilité × vulnérabilité × impact, graphe de corrélations)
- gamr.api      : routes FastAPI (contrats HTTP, dépendances, WebSocket)
- gamr.core     : briques transverses (settings, errors, logs, sécurité, realtime, rate-limit…)
- gamr.db       : base SQLAlchemy + session async
- gamr.models   : modèles ORM (fiches, corrélations, historique)
- gamr.schemas  : schémas Pydantic (entrées/sorties API)
- gamr.services : cas d’usage (fiches, corrélations, planificateur de revues)
"""
