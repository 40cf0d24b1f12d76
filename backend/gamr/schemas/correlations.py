from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, StrictFloat, computed_field

from gamr.engine.correlation_graph import STRONG_COEFFICIENT
from gamr.engine.scoring import to_percent
from gamr.schemas.risk_sheets import PageMeta

"""
Schemas Correlations (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des corrélations entre fiches de risque : création, mise à jour du coefficient,
  lecture, liste paginée, vue réseau et statistiques.
- Les contraintes du graphe (boucle, coefficient 0..1, type, extrémités) sont vérifiées par
  gamr.engine.correlation_graph (ValidationError -> 400, doublon -> 409).

Format réseau (consommé par le client de visualisation) :
{ "nodes": [...], "edges": [{"id", "source", "target", "coefficient", "type"}], "center_node": "..." }
"""


class CorrelationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source_risk_id: uuid.UUID
    target_risk_id: uuid.UUID
    coefficient: StrictFloat
    correlation_type: str


class CorrelationPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    coefficient: StrictFloat


class RiskSummary(BaseModel):
    """Résumé d’une fiche (extrémité d’arête / nœud réseau)."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    target: str
    scenario: str
    category: Optional[str] = None
    priority: str
    risk_score: int
    is_archived: bool = False

    @computed_field
    @property
    def risk_score_percent(self) -> int:
        return to_percent(self.risk_score)


class CorrelationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    source_risk_id: uuid.UUID
    target_risk_id: uuid.UUID
    coefficient: float
    correlation_type: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    source_risk: Optional[RiskSummary] = None
    target_risk: Optional[RiskSummary] = None

    @computed_field
    @property
    def is_strong(self) -> bool:
        return self.coefficient >= STRONG_COEFFICIENT


class CorrelationListResponse(BaseModel):
    data: List[CorrelationOut]
    meta: PageMeta


class NetworkNodeOut(RiskSummary):
    level: int


class NetworkEdgeOut(BaseModel):
    id: uuid.UUID
    source: uuid.UUID
    target: uuid.UUID
    coefficient: float
    type: str


class NetworkOut(BaseModel):
    nodes: List[NetworkNodeOut]
    edges: List[NetworkEdgeOut]
    center_node: uuid.UUID


class TypeCount(BaseModel):
    type: str
    count: int


class CorrelationStatsOut(BaseModel):
    total_correlations: int
    strong_correlations: int
    average_coefficient: float
    correlations_by_type: List[TypeCount]
    top_correlated_risks: List[CorrelationOut]
