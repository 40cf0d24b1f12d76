from __future__ import annotations

from typing import Any, Optional

"""
Engine Errors.

Rôle (fonctionnel) :
- Erreurs “métier” levées par le moteur (scoring + graphe de corrélations).
- Indépendantes de HTTP : la couche API les traduit en réponses (voir gamr.main).

Hiérarchie :
- CoreError
  - InvalidInputError   : facteur probabilité / vulnérabilité / impact hors domaine
  - ValidationError     : contrainte du graphe violée (boucle, coefficient, extrémité absente…)
    - DuplicateEdgeError : une corrélation active existe déjà pour (source, cible, type)
  - EdgeNotFoundError   : identifiant de corrélation inconnu
"""


class CoreError(Exception):
    """Erreur racine du moteur (toujours récupérable par l’appelant)."""

    code = "CORE_ERROR"

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(CoreError):
    """Valeur d’entrée hors de son domaine documenté (pas de clamp silencieux)."""

    code = "INVALID_INPUT"

    def __init__(self, field: str, value: Any, message: str) -> None:
        super().__init__(message, details={"field": field, "value": value})
        self.field = field
        self.value = value


class ValidationError(CoreError):
    """Contrainte du graphe de corrélations violée."""

    code = "VALIDATION_ERROR"


class DuplicateEdgeError(ValidationError):
    code = "DUPLICATE_CORRELATION"


class EdgeNotFoundError(CoreError):
    code = "NOT_FOUND"
