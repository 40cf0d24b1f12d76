# backend/scripts/seed_demo.py
from __future__ import annotations

import argparse
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import uuid4

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import sessionmaker

# Permet de lancer le script depuis backend/ sans souci d'import
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from gamr.core.settings import settings
from gamr.engine.correlation_graph import CorrelationGraph, CorrelationType, RiskRecord
from gamr.engine.errors import ValidationError
from gamr.engine.scoring import compute_score
from gamr.models.risk_correlation import RiskCorrelation
from gamr.models.risk_sheet import RiskSheet
from gamr.models.risk_sheet_event import RiskSheetEvent


# ---- Données de démo (sites / scénarios réalistes) ----
SCENARIOS = {
    "Sécurité physique": [
        ("Entrepôt central", "Intrusion nocturne par le quai de chargement"),
        ("Siège social", "Vol de matériel informatique en open space"),
        ("Agence Lyon", "Dégradation volontaire des accès"),
    ],
    "Cybersécurité": [
        ("ERP", "Rançongiciel via pièce jointe piégée"),
        ("Messagerie", "Hameçonnage ciblé de la direction financière"),
        ("Site e-commerce", "Déni de service pendant les soldes"),
    ],
    "Continuité": [
        ("Datacenter", "Coupure électrique prolongée"),
        ("Fournisseur logistique", "Défaillance du prestataire unique"),
        ("Usine Nord", "Inondation du sous-sol technique"),
    ],
    "Conformité": [
        ("Données clients", "Fuite de données personnelles"),
        ("Comptabilité", "Fraude interne sur les notes de frais"),
    ],
}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def seed(reset: bool, tenant: str, correlations: int, days: int) -> None:
    engine = create_engine(settings.DATABASE_URL_SYNC, future=True)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    with SessionLocal() as db:
        if reset:
            tenant_ids = select(RiskSheet.id).where(RiskSheet.tenant_id == tenant)
            # ordre inverse des FK
            db.execute(delete(RiskCorrelation).where(RiskCorrelation.source_risk_id.in_(tenant_ids)))
            db.execute(delete(RiskCorrelation).where(RiskCorrelation.target_risk_id.in_(tenant_ids)))
            db.execute(delete(RiskSheetEvent).where(RiskSheetEvent.risk_sheet_id.in_(tenant_ids)))
            db.execute(delete(RiskSheet).where(RiskSheet.tenant_id == tenant))
            db.commit()
            print(f"✅ Reset done (tenant '{tenant}').")

        graph = CorrelationGraph()
        sheets: list[RiskSheet] = []

        for category, items in SCENARIOS.items():
            for target, scenario in items:
                p = random.randint(1, 3)
                v = random.randint(1, 4)
                i = random.randint(1, 5)
                result = compute_score(p, v, i)

                created_at = now_utc() - timedelta(days=random.randint(0, days))
                sheet = RiskSheet(
                    id=uuid4(),
                    tenant_id=tenant,
                    target=target,
                    scenario=scenario,
                    category=category,
                    probability=p,
                    vulnerability=v,
                    impact=i,
                    risk_score=result.raw_score,
                    priority=result.priority.value,
                    version=1,
                    author="seed_demo",
                    review_date=created_at + timedelta(days=settings.REVIEW_PERIOD_DAYS),
                    is_archived=False,
                    created_at=created_at,
                    updated_at=created_at,
                )
                db.add(sheet)
                db.add(
                    RiskSheetEvent(
                        risk_sheet_id=sheet.id,
                        event_type="CREATED",
                        new_score=result.raw_score,
                        message="Fiche créée (seed)",
                        actor="seed_demo",
                        created_at=created_at,
                    )
                )
                graph.add_risk(RiskRecord(id=sheet.id, probability=p, vulnerability=v, impact=i, category=category))
                sheets.append(sheet)

        db.flush()

        # Corrélations aléatoires, validées par le graphe (pas de boucle, pas de doublon)
        created = 0
        attempts = 0
        while created < correlations and attempts < correlations * 10:
            attempts += 1
            source, target = random.sample(sheets, 2)
            try:
                edge = graph.add_edge(
                    source.id,
                    target.id,
                    round(random.uniform(0.2, 0.95), 2),
                    random.choice(list(CorrelationType)),
                )
            except ValidationError:
                continue

            ts = now_utc()
            db.add(
                RiskCorrelation(
                    id=edge.id,
                    source_risk_id=edge.source_risk_id,
                    target_risk_id=edge.target_risk_id,
                    coefficient=edge.coefficient,
                    correlation_type=edge.correlation_type.value,
                    is_active=True,
                    created_at=ts,
                    updated_at=ts,
                )
            )
            created += 1

        db.commit()

        print("✅ Seed terminé.")
        print(f"   - Fiches ajoutées: {len(sheets)} (tenant '{tenant}')")
        print(f"   - Corrélations créées: {created}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="Supprime les données du tenant avant de reseed")
    parser.add_argument("--tenant", default=settings.DEFAULT_TENANT, help="Tenant cible")
    parser.add_argument("--correlations", type=int, default=15, help="Nombre de corrélations à générer")
    parser.add_argument("--days", type=int, default=120, help="Fenêtre de dates de création (derniers N jours)")
    parser.add_argument("--seed", type=int, default=42, help="Seed RNG pour reproductibilité")
    args = parser.parse_args()

    random.seed(args.seed)
    seed(reset=args.reset, tenant=args.tenant, correlations=args.correlations, days=args.days)


if __name__ == "__main__":
    main()
