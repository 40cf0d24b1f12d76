from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gamr.db.base import Base

"""
Model RiskSheetEvent.

Rôle (fonctionnel) :
- Historique (audit trail) d’une fiche de risque :
  CREATED, UPDATED, ARCHIVED, CORRELATION_ADDED, CORRELATION_REACTIVATED,
  CORRELATION_UPDATED, CORRELATION_DEACTIVATED, RESCORED (scripts/rescore_all).
- Conserve la transition de score (old_score -> new_score, unité brute 1..60),
  l’auteur (X-Actor) et le request_id pour recouper avec les logs.
"""


class RiskSheetEvent(Base):
    __tablename__ = "risk_sheet_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    risk_sheet_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("risk_sheets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    old_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    new_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    actor: Mapped[str | None] = mapped_column(String(120), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    risk_sheet = relationship("RiskSheet", back_populates="events")
