"""
gamr.models

Modèles ORM (SQLAlchemy) persistés en base :
- RiskSheet       : fiche de risque (facteurs + score / priorité dérivés)
- RiskCorrelation : arête orientée pondérée entre deux fiches
- RiskSheetEvent  : historique d’audit d’une fiche
"""

from gamr.models.risk_sheet import RiskSheet
from gamr.models.risk_correlation import RiskCorrelation
from gamr.models.risk_sheet_event import RiskSheetEvent

__all__ = ["RiskSheet", "RiskCorrelation", "RiskSheetEvent"]
