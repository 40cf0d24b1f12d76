from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gamr.db.base import Base

"""
Model RiskSheet.

Rôle (fonctionnel) :
- Fiche de risque GAMR : une cible potentielle + un scénario de menace, évalués par
  probabilité (1..3), vulnérabilité (1..4) et impact (1..5).
- Porte le score brut (1..60) et la priorité calculés par gamr.engine.scoring à chaque écriture
  (jamais fournis par le client).
- Archivage logique (is_archived) : une fiche référencée n’est jamais supprimée physiquement.

Relations :
- RiskSheet -> RiskSheetEvent (historique / audit trail).
- RiskSheet <-> RiskCorrelation (arêtes sortantes / entrantes du graphe).

Index :
- (tenant_id, is_archived, created_at) : liste par défaut d’un tenant.
- (tenant_id, priority) : compteurs du dashboard.
"""


class RiskSheet(Base):
    __tablename__ = "risk_sheets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Isolation multi-tenant (slug)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Cible potentielle + scénario de menace
    target: Mapped[str] = mapped_column(String(255), nullable=False)
    scenario: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Facteurs GAMR
    probability: Mapped[int] = mapped_column(Integer, nullable=False)
    vulnerability: Mapped[int] = mapped_column(Integer, nullable=False)
    impact: Mapped[int] = mapped_column(Integer, nullable=False)

    # Dérivés (unité canonique : score brut 1..60)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    author: Mapped[str | None] = mapped_column(String(120), nullable=True)
    review_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    events = relationship("RiskSheetEvent", back_populates="risk_sheet")

    __table_args__ = (
        CheckConstraint("probability BETWEEN 1 AND 3", name="probability_range"),
        CheckConstraint("vulnerability BETWEEN 1 AND 4", name="vulnerability_range"),
        CheckConstraint("impact BETWEEN 1 AND 5", name="impact_range"),
        CheckConstraint("risk_score BETWEEN 1 AND 60", name="risk_score_range"),
        Index("ix_risk_sheets_tenant_list", "tenant_id", "is_archived", "created_at"),
        Index("ix_risk_sheets_tenant_priority", "tenant_id", "priority"),
    )
