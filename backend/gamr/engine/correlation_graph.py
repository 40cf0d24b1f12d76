from __future__ import annotations

import math
import uuid
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Optional, Set, Tuple

from gamr.engine.errors import DuplicateEdgeError, EdgeNotFoundError, ValidationError

"""
Correlation Graph.

Rôle (fonctionnel) :
- Maintient le graphe orienté et pondéré des corrélations entre fiches de risque.
- Valide la création d’arêtes (pas de boucle, coefficient 0..1, extrémités existantes et non archivées,
  une seule arête par triplet source/cible/type).
- Répond aux requêtes réseau utilisées par la visualisation et le reporting :
  voisins, réseau autour d’un risque (BFS borné), statistiques, top corrélations.

Notes :
- Le graphe est un snapshot en mémoire, sans I/O : la persistance est gérée par
  gamr.services.correlation_service qui le reconstruit depuis la base.
- Ordre stable partout : coefficient décroissant, puis identifiant d’arête (str).
- Une arête est “vivante” si elle est active ET que ses deux extrémités ne sont pas archivées.
  Seules les arêtes vivantes participent aux requêtes par défaut.
"""

RiskId = Hashable
EdgeId = Hashable

# Seuil du libellé “corrélation forte”
STRONG_COEFFICIENT = 0.7


class CorrelationType(str, Enum):
    """Nature de la relation (étiquette sémantique, sans effet sur la pondération)."""
    CAUSAL = "CAUSAL"
    CONDITIONAL = "CONDITIONAL"
    TEMPORAL = "TEMPORAL"
    RESOURCE = "RESOURCE"
    GEOGRAPHIC = "GEOGRAPHIC"


class Direction(str, Enum):
    OUT = "out"
    IN = "in"
    BOTH = "both"


@dataclass(frozen=True)
class RiskRecord:
    """Données minimales d’une fiche de risque vues par le graphe."""
    id: RiskId
    probability: int
    vulnerability: int
    impact: int
    category: Optional[str] = None
    is_archived: bool = False


@dataclass(frozen=True)
class CorrelationEdge:
    id: EdgeId
    source_risk_id: RiskId
    target_risk_id: RiskId
    coefficient: float
    correlation_type: CorrelationType
    is_active: bool = True


@dataclass(frozen=True)
class NetworkNode:
    id: RiskId
    level: int  # distance (en sauts) depuis le nœud central


@dataclass(frozen=True)
class NetworkView:
    """Sous-graphe autour d’un risque : nœuds (ordre BFS) + arêtes induites + centre."""
    nodes: List[NetworkNode]
    edges: List[CorrelationEdge]
    center_node: RiskId

    @property
    def node_ids(self) -> List[RiskId]:
        return [n.id for n in self.nodes]


@dataclass(frozen=True)
class GraphStats:
    total_edges: int
    strong_edges: int
    average_coefficient: float
    by_type: Dict[CorrelationType, int]


def _edge_order(edge: CorrelationEdge) -> Tuple[float, str]:
    return (-edge.coefficient, str(edge.id))


def _check_coefficient(value: Any, field: str = "coefficient") -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} doit être un nombre", details={"field": field, "value": value})
    value = float(value)
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ValidationError(f"{field} doit être compris entre 0 et 1", details={"field": field, "value": value})
    return value


def _check_correlation_type(value: Any) -> CorrelationType:
    try:
        return CorrelationType(value)
    except ValueError:
        raise ValidationError(
            "Type de corrélation inconnu",
            details={"field": "correlation_type", "value": value},
        ) from None


class CorrelationGraph:
    """
    Graphe de corrélations (snapshot en mémoire).

    Responsabilités :
    - Stocker les fiches (id + statut d’archivage) et les arêtes (actives ou non).
    - Garantir les invariants à la création / réactivation d’arête.
    - Fournir des parcours déterministes (tri explicite) et sans revisite (BFS + visited).
    """

    def __init__(
        self,
        risks: Iterable[RiskRecord] = (),
        edges: Iterable[CorrelationEdge] = (),
    ) -> None:
        self._risks: Dict[RiskId, RiskRecord] = {}
        self._edges: Dict[EdgeId, CorrelationEdge] = {}
        self._out: Dict[RiskId, Set[EdgeId]] = {}
        self._in: Dict[RiskId, Set[EdgeId]] = {}
        self._by_triple: Dict[Tuple[RiskId, RiskId, CorrelationType], EdgeId] = {}

        for risk in risks:
            self.add_risk(risk)
        # Chargement d’un état existant (déjà validé par la base) : pas de revalidation
        for edge in edges:
            self._store(edge)

    # ---------------- Fiches ----------------

    def add_risk(self, risk: RiskRecord) -> None:
        self._risks[risk.id] = risk

    def archive_risk(self, risk_id: RiskId) -> None:
        risk = self._risks.get(risk_id)
        if risk is not None:
            self._risks[risk_id] = replace(risk, is_archived=True)

    def risk(self, risk_id: RiskId) -> Optional[RiskRecord]:
        return self._risks.get(risk_id)

    def _is_available(self, risk_id: RiskId) -> bool:
        risk = self._risks.get(risk_id)
        return risk is not None and not risk.is_archived

    # ---------------- Arêtes ----------------

    def _store(self, edge: CorrelationEdge) -> None:
        self._edges[edge.id] = edge
        self._out.setdefault(edge.source_risk_id, set()).add(edge.id)
        self._in.setdefault(edge.target_risk_id, set()).add(edge.id)
        self._by_triple[(edge.source_risk_id, edge.target_risk_id, edge.correlation_type)] = edge.id

    def _is_live(self, edge: CorrelationEdge) -> bool:
        return (
            edge.is_active
            and self._is_available(edge.source_risk_id)
            and self._is_available(edge.target_risk_id)
        )

    def add_edge(
        self,
        source: RiskId,
        target: RiskId,
        coefficient: float,
        correlation_type: CorrelationType | str,
        *,
        edge_id: Optional[EdgeId] = None,
    ) -> CorrelationEdge:
        """
        Crée ou réactive une arête.

        - Même triplet déjà présent et inactif : réactivation avec le nouveau coefficient (même id).
        - Même triplet déjà actif : DuplicateEdgeError (jamais de doublon).
        """
        if source == target:
            raise ValidationError(
                "Une corrélation ne peut pas relier un risque à lui-même",
                details={"source_risk_id": str(source), "target_risk_id": str(target)},
            )
        coef = _check_coefficient(coefficient)
        ctype = _check_correlation_type(correlation_type)

        for field, risk_id in (("source_risk_id", source), ("target_risk_id", target)):
            if not self._is_available(risk_id):
                raise ValidationError(
                    "Risque introuvable ou archivé",
                    details={"field": field, "value": str(risk_id)},
                )

        existing_id = self._by_triple.get((source, target, ctype))
        if existing_id is not None:
            existing = self._edges[existing_id]
            if existing.is_active:
                raise DuplicateEdgeError(
                    "Une corrélation active existe déjà pour ces risques et ce type",
                    details={"correlation_id": str(existing.id)},
                )
            edge = replace(existing, coefficient=coef, is_active=True)
        else:
            edge = CorrelationEdge(
                id=edge_id if edge_id is not None else uuid.uuid4(),
                source_risk_id=source,
                target_risk_id=target,
                coefficient=coef,
                correlation_type=ctype,
                is_active=True,
            )

        self._store(edge)
        return edge

    def edge(self, edge_id: EdgeId) -> CorrelationEdge:
        edge = self._edges.get(edge_id)
        if edge is None:
            raise EdgeNotFoundError("Corrélation introuvable", details={"correlation_id": str(edge_id)})
        return edge

    def deactivate(self, edge_id: EdgeId) -> CorrelationEdge:
        """Désactive (sans supprimer) une arête. Idempotent."""
        edge = self.edge(edge_id)
        if edge.is_active:
            edge = replace(edge, is_active=False)
            self._store(edge)
        return edge

    def update_coefficient(self, edge_id: EdgeId, coefficient: float) -> CorrelationEdge:
        edge = replace(self.edge(edge_id), coefficient=_check_coefficient(coefficient))
        self._store(edge)
        return edge

    def edges(self, *, include_inactive: bool = False) -> List[CorrelationEdge]:
        """Toutes les arêtes triées ; include_inactive=True pour l’audit."""
        selected = [
            e for e in self._edges.values()
            if include_inactive or self._is_live(e)
        ]
        return sorted(selected, key=_edge_order)

    # ---------------- Requêtes ----------------

    def neighbors(
        self,
        risk_id: RiskId,
        direction: Direction | str = Direction.BOTH,
        min_coefficient: float = 0.0,
        active_only: bool = True,
    ) -> Iterator[Tuple[CorrelationEdge, RiskId]]:
        """
        Séquence paresseuse de (arête, autre extrémité).

        Chaque appel repart de zéro (aucun état conservé entre deux appels).
        Risque inconnu : séquence vide.
        """
        try:
            direction = Direction(direction)
        except ValueError:
            raise ValidationError("Direction inconnue", details={"field": "direction", "value": direction}) from None
        min_c = _check_coefficient(min_coefficient, "min_coefficient")
        return self._iter_neighbors(risk_id, direction, min_c, active_only)

    def _iter_neighbors(
        self,
        risk_id: RiskId,
        direction: Direction,
        min_coefficient: float,
        active_only: bool,
    ) -> Iterator[Tuple[CorrelationEdge, RiskId]]:
        edge_ids: Set[EdgeId] = set()
        if direction in (Direction.OUT, Direction.BOTH):
            edge_ids |= self._out.get(risk_id, set())
        if direction in (Direction.IN, Direction.BOTH):
            edge_ids |= self._in.get(risk_id, set())

        candidates = sorted((self._edges[eid] for eid in edge_ids), key=_edge_order)
        for edge in candidates:
            if edge.coefficient < min_coefficient:
                continue
            if active_only and not self._is_live(edge):
                continue
            other = edge.target_risk_id if edge.source_risk_id == risk_id else edge.source_risk_id
            yield edge, other

    def network_around(self, risk_id: RiskId, depth: int, min_coefficient: float) -> NetworkView:
        """
        Parcours en largeur depuis risk_id, borné à `depth` sauts.

        - Suit les arêtes vivantes dans les deux sens, coefficient >= min_coefficient.
        - Chaque nœud est visité au plus une fois (cycles sans effet).
        - Arêtes renvoyées : toutes les arêtes qualifiantes entre nœuds atteints.
        """
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
            raise ValidationError("depth doit être un entier positif ou nul", details={"field": "depth", "value": depth})
        min_c = _check_coefficient(min_coefficient, "min_coefficient")

        if not self._is_available(risk_id):
            return NetworkView(nodes=[], edges=[], center_node=risk_id)

        levels: Dict[RiskId, int] = {risk_id: 0}
        order: List[RiskId] = [risk_id]
        queue = deque([risk_id])

        while queue:
            current = queue.popleft()
            if levels[current] >= depth:
                continue
            for _, other in self._iter_neighbors(current, Direction.BOTH, min_c, True):
                if other in levels:
                    continue
                levels[other] = levels[current] + 1
                order.append(other)
                queue.append(other)

        induced = [
            e for e in self.edges()
            if e.coefficient >= min_c and e.source_risk_id in levels and e.target_risk_id in levels
        ]

        return NetworkView(
            nodes=[NetworkNode(id=rid, level=levels[rid]) for rid in order],
            edges=induced,
            center_node=risk_id,
        )

    def stats(self, *, include_inactive: bool = False) -> GraphStats:
        """Agrégats sur les arêtes vivantes (ou toutes si include_inactive)."""
        selected = self.edges(include_inactive=include_inactive)

        by_type: Dict[CorrelationType, int] = {t: 0 for t in CorrelationType}
        for edge in selected:
            by_type[edge.correlation_type] += 1

        total = len(selected)
        average = sum(e.coefficient for e in selected) / total if total else 0.0

        return GraphStats(
            total_edges=total,
            strong_edges=sum(1 for e in selected if e.coefficient >= STRONG_COEFFICIENT),
            average_coefficient=average,
            by_type=by_type,
        )

    def top_correlated(self, n: int) -> List[CorrelationEdge]:
        """Les n arêtes vivantes les plus fortes (départage par id)."""
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise ValidationError("n doit être un entier positif ou nul", details={"field": "n", "value": n})
        return self.edges()[:n]
