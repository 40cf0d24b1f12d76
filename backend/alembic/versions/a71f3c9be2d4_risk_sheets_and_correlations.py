"""Fiches de risque, historique et corrélations.

Rôle (fonctionnel) :
- risk_sheets : fiches GAMR par tenant (facteurs, score brut 1..60, priorité, revue, archivage).
- risk_sheet_events : historique (audit trail) avec actor + request_id.
- risk_correlations : arêtes orientées du graphe (1 ligne max par source/cible/type,
  pas de boucle, coefficient 0..1, pas de suppression en cascade).

Revision ID: a71f3c9be2d4
Revises: 5c2e81d0a4f3
Create Date: 2026-03-02 09:40:17.530662
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Identifiants Alembic
revision: str = "a71f3c9be2d4"
down_revision: Union[str, Sequence[str], None] = "5c2e81d0a4f3"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Application des changements de schéma."""
    op.create_table(
        "risk_sheets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("target", sa.String(length=255), nullable=False),
        sa.Column("scenario", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("probability", sa.Integer(), nullable=False),
        sa.Column("vulnerability", sa.Integer(), nullable=False),
        sa.Column("impact", sa.Integer(), nullable=False),
        sa.Column("risk_score", sa.Integer(), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("author", sa.String(length=120), nullable=True),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("probability BETWEEN 1 AND 3", name=op.f("ck_risk_sheets_probability_range")),
        sa.CheckConstraint("vulnerability BETWEEN 1 AND 4", name=op.f("ck_risk_sheets_vulnerability_range")),
        sa.CheckConstraint("impact BETWEEN 1 AND 5", name=op.f("ck_risk_sheets_impact_range")),
        sa.CheckConstraint("risk_score BETWEEN 1 AND 60", name=op.f("ck_risk_sheets_risk_score_range")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_risk_sheets")),
    )
    op.create_index("ix_risk_sheets_tenant_list", "risk_sheets", ["tenant_id", "is_archived", "created_at"], unique=False)
    op.create_index("ix_risk_sheets_tenant_priority", "risk_sheets", ["tenant_id", "priority"], unique=False)

    op.create_table(
        "risk_sheet_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("risk_sheet_id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("old_score", sa.Integer(), nullable=True),
        sa.Column("new_score", sa.Integer(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("actor", sa.String(length=120), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["risk_sheet_id"],
            ["risk_sheets.id"],
            name=op.f("fk_risk_sheet_events_risk_sheet_id_risk_sheets"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_risk_sheet_events")),
    )
    op.create_index(op.f("ix_risk_sheet_events_risk_sheet_id"), "risk_sheet_events", ["risk_sheet_id"], unique=False)
    op.create_index(op.f("ix_risk_sheet_events_request_id"), "risk_sheet_events", ["request_id"], unique=False)
    op.create_index(op.f("ix_risk_sheet_events_created_at"), "risk_sheet_events", ["created_at"], unique=False)

    op.create_table(
        "risk_correlations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source_risk_id", sa.Uuid(), nullable=False),
        sa.Column("target_risk_id", sa.Uuid(), nullable=False),
        sa.Column("coefficient", sa.Float(), nullable=False),
        sa.Column("correlation_type", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("source_risk_id <> target_risk_id", name=op.f("ck_risk_correlations_no_self_loop")),
        sa.CheckConstraint(
            "coefficient >= 0 AND coefficient <= 1", name=op.f("ck_risk_correlations_coefficient_range")
        ),
        sa.ForeignKeyConstraint(
            ["source_risk_id"],
            ["risk_sheets.id"],
            name=op.f("fk_risk_correlations_source_risk_id_risk_sheets"),
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["target_risk_id"],
            ["risk_sheets.id"],
            name=op.f("fk_risk_correlations_target_risk_id_risk_sheets"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_risk_correlations")),
        sa.UniqueConstraint(
            "source_risk_id", "target_risk_id", "correlation_type", name="uq_risk_correlations_triple"
        ),
    )
    op.create_index(op.f("ix_risk_correlations_source_risk_id"), "risk_correlations", ["source_risk_id"], unique=False)
    op.create_index(op.f("ix_risk_correlations_target_risk_id"), "risk_correlations", ["target_risk_id"], unique=False)
    op.create_index("ix_risk_correlations_active_coef", "risk_correlations", ["is_active", "coefficient"], unique=False)


def downgrade() -> None:
    """Retour arrière des changements de schéma."""
    op.drop_index("ix_risk_correlations_active_coef", table_name="risk_correlations")
    op.drop_index(op.f("ix_risk_correlations_target_risk_id"), table_name="risk_correlations")
    op.drop_index(op.f("ix_risk_correlations_source_risk_id"), table_name="risk_correlations")
    op.drop_table("risk_correlations")

    op.drop_index(op.f("ix_risk_sheet_events_created_at"), table_name="risk_sheet_events")
    op.drop_index(op.f("ix_risk_sheet_events_request_id"), table_name="risk_sheet_events")
    op.drop_index(op.f("ix_risk_sheet_events_risk_sheet_id"), table_name="risk_sheet_events")
    op.drop_table("risk_sheet_events")

    op.drop_index("ix_risk_sheets_tenant_priority", table_name="risk_sheets")
    op.drop_index("ix_risk_sheets_tenant_list", table_name="risk_sheets")
    op.drop_table("risk_sheets")
