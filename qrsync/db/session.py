from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker

from qrsync.config import config
from qrsync.db.base import Base


def build_engine(database_url: str, pool_size: int = 5) -> AsyncEngine:
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://")

    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, future=True)

    return create_async_engine(database_url, future=True, pool_size=pool_size, pool_pre_ping=True)


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, class_=AsyncSession)


engine = build_engine(config.DATABASE_URL, config.DB_POOL_SIZE)
SessionLocal = build_sessionmaker(engine)


async def create_tables(bind: AsyncEngine = engine) -> None:
    import qrsync.db  # noqa: F401  registers models on Base.metadata

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
