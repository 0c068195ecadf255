"""Database model and connection for the version policy store."""

from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .. import config
from ..core.versioning import BASELINE_VERSION


def make_engine(url: str = config.DATABASE_URL) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(url, echo=False, pool_pre_ping=True)


# Create async engine
engine = make_engine()

# Session factory
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class AppVersionConfig(Base):
    """Single-row table holding the client version policy."""

    __tablename__ = "app_version_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    minimum_required_version: Mapped[str] = mapped_column(
        String(64), default=BASELINE_VERSION, nullable=False
    )
    latest_version: Mapped[str] = mapped_column(
        String(64), default=BASELINE_VERSION, nullable=False
    )
    ota_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    force_update: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def to_document(self) -> dict:
        return {
            "minimum_required_version": self.minimum_required_version,
            "latest_version": self.latest_version,
            "ota_url": self.ota_url,
            "force_update": self.force_update,
        }


async def init_db(db_engine: AsyncEngine = engine):
    """Initialize database tables."""
    url = db_engine.url
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
