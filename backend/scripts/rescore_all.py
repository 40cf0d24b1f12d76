import sys
import asyncio
import argparse
from datetime import datetime, timezone

# Windows: compat event loop (évite certains soucis avec drivers async PostgreSQL)
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from sqlalchemy import select

from gamr.db.session import AsyncSessionLocal
from gamr.engine.errors import InvalidInputError
from gamr.engine.scoring import compute_score
from gamr.models.risk_sheet import RiskSheet
from gamr.models.risk_sheet_event import RiskSheetEvent

"""
Script CLI: rescore_all

Rôle (fonctionnel) :
- Recalcule le score brut (1..60) et la priorité de chaque fiche depuis ses trois facteurs.
- Corrige les fiches dont le score stocké diverge (ancienne unité, import manuel…)
  et trace la correction dans l’historique (event RESCORED).

Usage :
- python -m scripts.rescore_all [--tenant acme] [--dry-run]

Notes :
- Les fiches archivées sont incluses (leur historique doit rester cohérent).
- Une fiche aux facteurs hors domaine est signalée et laissée intacte.
"""


async def main(tenant: str | None, dry_run: bool, session_factory=AsyncSessionLocal) -> int:
    """Retourne le nombre de fiches à corriger (corrigées sauf en dry-run)."""
    checked = fixed = invalid = 0

    async with session_factory() as db:
        stmt = select(RiskSheet).order_by(RiskSheet.created_at)
        if tenant:
            stmt = stmt.where(RiskSheet.tenant_id == tenant)
        sheets = (await db.execute(stmt)).scalars().all()

        for sheet in sheets:
            checked += 1
            try:
                result = compute_score(sheet.probability, sheet.vulnerability, sheet.impact)
            except InvalidInputError as exc:
                invalid += 1
                print(f"⚠️  {sheet.id}: {exc.message}")
                continue

            if sheet.risk_score == result.raw_score and sheet.priority == result.priority.value:
                continue

            fixed += 1
            print(f"{sheet.id}: {sheet.risk_score}/{sheet.priority} -> {result.raw_score}/{result.priority.value}")
            if dry_run:
                continue

            now = datetime.now(timezone.utc)
            db.add(
                RiskSheetEvent(
                    risk_sheet_id=sheet.id,
                    event_type="RESCORED",
                    old_score=sheet.risk_score,
                    new_score=result.raw_score,
                    message="Score recalculé (rescore_all)",
                    actor="rescore_all",
                    created_at=now,
                )
            )
            sheet.risk_score = result.raw_score
            sheet.priority = result.priority.value
            sheet.updated_at = now

        if not dry_run:
            await db.commit()

    print(f"✅ {checked} fiches vérifiées, {fixed} corrigées{' (dry-run)' if dry_run else ''}, {invalid} invalides.")
    return fixed


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--tenant", default=None, help="Limiter à un tenant")
    parser.add_argument("--dry-run", action="store_true", help="Affiche les corrections sans écrire")
    args = parser.parse_args()
    asyncio.run(main(args.tenant, args.dry_run))
