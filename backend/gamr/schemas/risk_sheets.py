from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, computed_field, field_validator

from gamr.engine.scoring import to_percent

"""
Schemas Risk Sheets (Pydantic).

Rôle (fonctionnel) :
- Contrat HTTP des fiches de risque : création, mise à jour partielle, lecture, liste paginée,
  historique et statistiques du dashboard.
- Les facteurs sont des entiers stricts ; leurs bornes (1..3 / 1..4 / 1..5) sont vérifiées par
  gamr.engine.scoring (InvalidInputError -> 422 INVALID_INPUT), source unique de vérité.
- risk_score et priority ne sont jamais acceptés en entrée (extra="forbid").
- Sorties : score brut (risk_score, 1..60) + pourcentage d’affichage dérivé (risk_score_percent).
"""


def _strip(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip()
    return v


class RiskSheetCreate(BaseModel):
    """Payload de création d’une fiche de risque."""
    model_config = ConfigDict(extra="forbid")

    target: str = Field(..., min_length=1, max_length=255)
    scenario: str = Field(..., min_length=1, max_length=2000)
    probability: StrictInt
    vulnerability: StrictInt
    impact: StrictInt
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator("target", "scenario", "category", mode="before")
    @classmethod
    def _strip_strings(cls, v: Any) -> Any:
        return _strip(v)

    @field_validator("category")
    @classmethod
    def _empty_category_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class RiskSheetUpdate(BaseModel):
    """Mise à jour partielle : seuls les champs envoyés sont appliqués."""
    model_config = ConfigDict(extra="forbid")

    target: Optional[str] = Field(default=None, min_length=1, max_length=255)
    scenario: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    probability: Optional[StrictInt] = None
    vulnerability: Optional[StrictInt] = None
    impact: Optional[StrictInt] = None
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator("target", "scenario", "category", mode="before")
    @classmethod
    def _strip_strings(cls, v: Any) -> Any:
        return _strip(v)

    @field_validator("category")
    @classmethod
    def _empty_category_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_validator("target", "scenario", "probability", "vulnerability", "impact")
    @classmethod
    def _not_null(cls, v: Any) -> Any:
        # null explicite refusé (seule category peut être effacée)
        if v is None:
            raise ValueError("ce champ ne peut pas être null")
        return v


class RiskSheetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: str
    target: str
    scenario: str
    category: Optional[str] = None

    probability: int
    vulnerability: int
    impact: int

    risk_score: int
    priority: str

    version: int
    author: Optional[str] = None
    review_date: Optional[datetime] = None
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def risk_score_percent(self) -> int:
        return to_percent(self.risk_score)


class RiskSheetEventOut(BaseModel):
    """Événement d’historique (audit trail)."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    risk_sheet_id: uuid.UUID
    event_type: str
    old_score: Optional[int] = None
    new_score: Optional[int] = None
    message: Optional[str] = None
    actor: Optional[str] = None
    request_id: Optional[str] = None
    created_at: datetime


class PageMeta(BaseModel):
    page: int
    page_size: int
    total: int
    pages: int


class RiskSheetListResponse(BaseModel):
    data: List[RiskSheetOut]
    meta: PageMeta
