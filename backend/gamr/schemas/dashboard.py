from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

"""
Schemas Dashboard (Pydantic).

Rôle (fonctionnel) :
- Contrat de réponse de GET /risk-sheets/stats/dashboard (agrégats par tenant).
- DTO de lecture : valeurs calculées, pas des lignes DB.
- Les moyennes de score sont données dans l’unité brute (1..60) ET en pourcentage (0..100),
  tous deux dérivés de la même valeur stockée.
"""


class CategoryCount(BaseModel):
    category: Optional[str] = None
    count: int


class RiskDashboardOut(BaseModel):
    total_risks: int
    critical_risks: int
    high_risks: int
    recent_risks: int
    risks_by_priority: Dict[str, int]
    risks_by_category: List[CategoryCount]
    average_score: Optional[float] = None
    average_score_percent: Optional[int] = None

    model_config = ConfigDict(extra="forbid")
