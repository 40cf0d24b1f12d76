"""
gamr.schemas

Schémas Pydantic (contrat HTTP), distincts des modèles ORM (gamr.models) :
- risk_sheets  : fiches de risque (entrées strictes, sorties score brut + pourcentage)
- correlations : corrélations, vue réseau, statistiques
- dashboard    : agrégats par tenant
"""
