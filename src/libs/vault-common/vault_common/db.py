# src/libs/vault-common/vault_common/db.py
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import (
    DATABASE_URL,
    DB_POOL_SIZE,
    POSTGRES_DB,
    POSTGRES_HOST,
    POSTGRES_PASSWORD,
    POSTGRES_PORT,
    POSTGRES_USER,
)

_ASYNC_SCHEME = "postgresql+asyncpg://"


def get_async_database_url() -> str:
    """
    The database URL with the asyncpg driver scheme. DATABASE_URL wins over the
    POSTGRES_* settings; plain `postgres://` and `postgresql://` URLs are rewritten.
    """
    url = DATABASE_URL or f"{_ASYNC_SCHEME}{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
    for scheme in ("postgresql://", "postgres://"):
        if url.startswith(scheme):
            return _ASYNC_SCHEME + url[len(scheme):]
    return url

# Read-only: sessions are never flushed.
async_engine = create_async_engine(
    get_async_database_url(),
    pool_pre_ping=True,
    pool_size=DB_POOL_SIZE,
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

async def get_async_db_session():
    """
    Request-scoped AsyncSession dependency. Every repository used while
    building one report shares it.
    """
    async with AsyncSessionLocal() as session:
        yield session
