from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Tuple

from gamr.engine.errors import InvalidInputError

"""
Score Engine (GAMR).

Rôle (fonctionnel) :
- Calcule le score brut d’une fiche de risque : probabilité × vulnérabilité × impact.
- Classe ce score en niveau de priorité (LOW / MEDIUM / HIGH / CRITICAL).
- Fournit l’unique conversion vers l’échelle d’affichage 0..100 (to_percent ;
  average_to_percent applique la même formule à une moyenne).

Domaines :
- probabilité   : 1..3 (1 = faible, 3 = forte)
- vulnérabilité : 1..4 (1 = totalement maîtrisée, 4 = aucune mesure)
- impact        : 1..5 (1 = image, 5 = vie humaine)
=> score brut 1..60 (unité canonique, seule valeur stockée)

Seuils (fixes) :
- score >= 45 -> CRITICAL
- score >= 25 -> HIGH
- score >= 10 -> MEDIUM
- sinon       -> LOW
Un score exactement sur un seuil prend le niveau supérieur.
"""

PROBABILITY_RANGE: Tuple[int, int] = (1, 3)
VULNERABILITY_RANGE: Tuple[int, int] = (1, 4)
IMPACT_RANGE: Tuple[int, int] = (1, 5)

MIN_RAW_SCORE = 1
MAX_RAW_SCORE = PROBABILITY_RANGE[1] * VULNERABILITY_RANGE[1] * IMPACT_RANGE[1]  # 60

CRITICAL_THRESHOLD = 45
HIGH_THRESHOLD = 25
MEDIUM_THRESHOLD = 10


class Priority(str, Enum):
    """Niveau de priorité dérivé du score (ordre de sévérité total)."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.CRITICAL: 3,
}


@dataclass(frozen=True)
class ScoreResult:
    """Résultat du scoring : score brut (1..60) + priorité."""
    raw_score: int
    priority: Priority

    @property
    def percent(self) -> int:
        return to_percent(self.raw_score)


def _check_factor(name: str, value: Any, bounds: Tuple[int, int]) -> int:
    # bool est un int en Python : on le refuse explicitement
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(name, value, f"{name} doit être un entier")
    low, high = bounds
    if not low <= value <= high:
        raise InvalidInputError(name, value, f"{name} doit être compris entre {low} et {high}")
    return value


def _check_raw(raw_score: Any) -> int:
    return _check_factor("raw_score", raw_score, (MIN_RAW_SCORE, MAX_RAW_SCORE))


def classify(raw_score: int) -> Priority:
    """Map un score brut 1..60 vers un niveau de priorité (seuils fixes)."""
    raw = _check_raw(raw_score)
    if raw >= CRITICAL_THRESHOLD:
        return Priority.CRITICAL
    if raw >= HIGH_THRESHOLD:
        return Priority.HIGH
    if raw >= MEDIUM_THRESHOLD:
        return Priority.MEDIUM
    return Priority.LOW


def compute_score(probability: int, vulnerability: int, impact: int) -> ScoreResult:
    """
    Calcule (score brut, priorité) pour un triplet de facteurs.

    Lève InvalidInputError si un facteur est hors domaine : l’appelant doit corriger
    la saisie avant toute persistance.
    """
    p = _check_factor("probability", probability, PROBABILITY_RANGE)
    v = _check_factor("vulnerability", vulnerability, VULNERABILITY_RANGE)
    i = _check_factor("impact", impact, IMPACT_RANGE)

    raw = p * v * i
    return ScoreResult(raw_score=raw, priority=classify(raw))


def _percent(raw: float) -> int:
    return round(raw / MAX_RAW_SCORE * 100)


def to_percent(raw_score: int) -> int:
    """Conversion d’affichage : score brut 1..60 -> pourcentage 0..100."""
    return _percent(_check_raw(raw_score))


def average_to_percent(mean_raw_score: float) -> int:
    """Même conversion que to_percent, appliquée à une moyenne de scores bruts (non entière)."""
    if isinstance(mean_raw_score, bool) or not isinstance(mean_raw_score, (int, float)):
        raise InvalidInputError("average_score", mean_raw_score, "average_score doit être un nombre")
    if not MIN_RAW_SCORE <= mean_raw_score <= MAX_RAW_SCORE:
        raise InvalidInputError(
            "average_score",
            mean_raw_score,
            f"average_score doit être compris entre {MIN_RAW_SCORE} et {MAX_RAW_SCORE}",
        )
    return _percent(mean_raw_score)
