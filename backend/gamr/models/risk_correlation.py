from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gamr.db.base import Base

"""
Model RiskCorrelation.

Rôle (fonctionnel) :
- Arête orientée du graphe de corrélations : source -> cible, coefficient 0..1, type
  (CAUSAL, CONDITIONAL, TEMPORAL, RESOURCE, GEOGRAPHIC).
- Désactivation plutôt que suppression (is_active) : l’historique reste auditable.

Contraintes (garanties par la base, y compris en cas d’écritures concurrentes) :
- 1 ligne max par triplet (source, cible, type) : la réactivation réutilise la ligne.
- Pas de boucle (source != cible), coefficient dans [0, 1].
- Pas de suppression en cascade : les fiches sont archivées, jamais supprimées.
"""


class RiskCorrelation(Base):
    __tablename__ = "risk_correlations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    source_risk_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("risk_sheets.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    target_risk_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("risk_sheets.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    coefficient: Mapped[float] = mapped_column(Float, nullable=False)
    correlation_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    source_risk = relationship("RiskSheet", foreign_keys=[source_risk_id], lazy="joined")
    target_risk = relationship("RiskSheet", foreign_keys=[target_risk_id], lazy="joined")

    __table_args__ = (
        UniqueConstraint("source_risk_id", "target_risk_id", "correlation_type", name="uq_risk_correlations_triple"),
        CheckConstraint("source_risk_id <> target_risk_id", name="no_self_loop"),
        CheckConstraint("coefficient >= 0 AND coefficient <= 1", name="coefficient_range"),
        Index("ix_risk_correlations_active_coef", "is_active", "coefficient"),
    )
