from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings, get_settings
from storefront.database import async_session
from storefront.services.notification_service import EmailNotificationService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


def get_notifier(settings: Settings = Depends(get_settings)) -> EmailNotificationService:
    return EmailNotificationService(settings)
