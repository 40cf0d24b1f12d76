"""
gamr.engine

Cœur algorithmique, sans I/O ni dépendance à FastAPI / SQLAlchemy.

Contenu :
- scoring           : score brut (P × V × I, 1..60) + priorité + conversion d’affichage 0..100
- correlation_graph : graphe orienté pondéré des corrélations (validation, voisins, réseau, stats)
- errors            : erreurs métier (InvalidInputError, ValidationError…)
"""

from gamr.engine.correlation_graph import (
    CorrelationEdge,
    CorrelationGraph,
    CorrelationType,
    Direction,
    GraphStats,
    NetworkNode,
    NetworkView,
    RiskRecord,
)
from gamr.engine.errors import (
    CoreError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    InvalidInputError,
    ValidationError,
)
from gamr.engine.scoring import Priority, ScoreResult, classify, compute_score, to_percent

__all__ = [
    "CorrelationEdge",
    "CorrelationGraph",
    "CorrelationType",
    "Direction",
    "GraphStats",
    "NetworkNode",
    "NetworkView",
    "RiskRecord",
    "CoreError",
    "DuplicateEdgeError",
    "EdgeNotFoundError",
    "InvalidInputError",
    "ValidationError",
    "Priority",
    "ScoreResult",
    "classify",
    "compute_score",
    "to_percent",
]
