"""
Database session configuration.

This module handles database engine creation and the session factory
using SQLAlchemy with async support for PostgreSQL.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import settings

IS_SQLITE = settings.database_url.startswith("sqlite")

# SQLite pools do not accept sizing arguments
pool_options = {} if IS_SQLITE else {
    "pool_size": settings.db_pool_size,
    "max_overflow": settings.db_max_overflow,
}

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    future=True,
    **pool_options,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()
