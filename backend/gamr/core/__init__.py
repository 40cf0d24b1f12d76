"""
gamr.core

Briques transverses de l’API GAMR (indépendantes du domaine risques / corrélations) :

- settings   : configuration centralisée (pydantic-settings, .env)
- errors     : format d’erreur uniforme + traduction des erreurs moteur en statut HTTP
- logging    : logs JSON (1 ligne = 1 événement) enrichis du request_id
- request_id : identifiant de requête propagé (ContextVar)
- security   : API key (routes d’écriture) + résolution du tenant (X-Tenant-Id)
- rate_limit : limitation des écritures par tenant / IP
- realtime   : diffusion WebSocket des événements métier
"""
