"""SQLAlchemy-backed policy store."""

from __future__ import annotations

from typing import Any, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import config
from .database import AppVersionConfig, async_session

UPDATABLE_FIELDS = ("minimum_required_version", "latest_version", "ota_url", "force_update")


class SqlPolicyStore:
    """
    Reads and writes the single app_version_config row.

    When no row exists, get_policy() creates one seeded from the environment
    defaults, so a fresh database behaves like a configured one.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session):
        self._session_factory = session_factory

    async def get_policy(self) -> Optional[dict[str, Any]]:
        async with self._session_factory() as session:
            row = await self._get_or_create(session)
            return row.to_document()

    async def update_policy(self, **fields: Any) -> dict[str, Any]:
        """Apply a partial update and return the stored document."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown policy fields: {', '.join(sorted(unknown))}")

        async with self._session_factory() as session:
            row = await self._get_or_create(session)
            for name, value in fields.items():
                setattr(row, name, value)
            await session.commit()
            await session.refresh(row)
            logger.info(f"[Policy] Stored policy updated: {sorted(fields)}")
            return row.to_document()

    async def _get_or_create(self, session: AsyncSession) -> AppVersionConfig:
        result = await session.execute(select(AppVersionConfig).order_by(AppVersionConfig.id).limit(1))
        row = result.scalar_one_or_none()
        if row is not None:
            return row

        defaults = config.get_env_policy_defaults()
        row = AppVersionConfig(
            minimum_required_version=defaults["minimum_required_version"],
            latest_version=defaults["latest_version"],
            ota_url=defaults["ota_url"],
            force_update=defaults["force_update_enabled"],
        )
        session.add(row)
        await session.commit()
        await session.refresh(row)
        logger.info("[Policy] Created default app version config")
        return row
