from typing import Dict, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from nurseai.database import AsyncSessionLocal
from nurseai.models.app_config import AppConfig


class AppConfigRepository:
    """Read access to the ``app_config`` key/value table."""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get_all(self) -> Dict[str, str]:
        async with self.session_factory() as db:
            result = await db.execute(select(AppConfig.config_key, AppConfig.config_value))
            return {row.config_key: row.config_value for row in result}

    async def get(self, key: str) -> Optional[str]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(AppConfig.config_value).where(AppConfig.config_key == key)
            )
            return result.scalar_one_or_none()
