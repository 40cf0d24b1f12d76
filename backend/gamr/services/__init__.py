"""
gamr.services

Package “services” : cas d’usage indépendants des endpoints HTTP.

Rôle (fonctionnel) :
- risk_sheet_service  : cycle de vie des fiches (scoring à chaque écriture, historique, dashboard).
- correlation_service : persistance du graphe de corrélations, vue réseau, statistiques.
- review_scheduler    : tâche périodique (revues échues, risques critiques) -> WebSocket.

Principe :
- gamr.engine   = calculs purs (scoring, graphe), sans I/O
- gamr.services = orchestration (session DB, transactions, audit, logs)
- gamr.api      = transport HTTP (routes, validation, dépendances)
"""
