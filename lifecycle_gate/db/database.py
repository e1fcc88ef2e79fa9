"""
Database Connection
===================
Async SQLAlchemy engine for the reference authority
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from lifecycle_gate.config import get_settings


settings = get_settings()

# Create engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    future=True,
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session():
    """Get a database session"""
    async with async_session_factory() as session:
        yield session


async def init_db(bind=None):
    """Create all tables (for development only - use migrations in production)"""
    from lifecycle_gate.db.models import Base
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
