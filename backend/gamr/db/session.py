from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from gamr.core.settings import settings

"""
DB Session.

Rôle (fonctionnel) :
- Initialise l’engine SQLAlchemy async (asyncpg en runtime).
- Fournit la factory AsyncSessionLocal et la dépendance FastAPI get_db().

Notes :
- expire_on_commit=False : les objets restent lisibles après commit (sérialisation des réponses).
- echo=False : pas de log SQL brut (logs applicatifs JSON uniquement).
"""


def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, echo=False, pool_pre_ping=url.startswith("postgresql"))


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(settings.DATABASE_URL)
AsyncSessionLocal = make_sessionmaker(engine)


async def get_db():
    """Dépendance FastAPI : yield une session DB et garantit sa fermeture."""
    async with AsyncSessionLocal() as session:
        yield session
