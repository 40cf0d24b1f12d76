"""Initialisation d’Alembic.

Rôle (fonctionnel) :
- Migration d’ancrage (point de départ) pour l’historique Alembic du schéma GAMR.
- Ne modifie pas le schéma.

Revision ID: 5c2e81d0a4f3
Revises:
Create Date: 2026-03-02 09:12:41.118204
"""

from typing import Sequence, Union

# Identifiants Alembic
revision: str = "5c2e81d0a4f3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Application des changements de schéma."""
    pass


def downgrade() -> None:
    """Retour arrière des changements de schéma."""
    pass
