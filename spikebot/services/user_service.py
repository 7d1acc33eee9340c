"""User service for subscription owners."""
from typing import Optional
from datetime import datetime, timezone
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from spikebot.models import User
import logging

logger = logging.getLogger(__name__)


class UserService:
    """Service for user management."""
    
    @staticmethod
    async def get_or_create_user(
        db: AsyncSession,
        telegram_id: int,
        username: Optional[str] = None
    ) -> User:
        """
        Get existing user by Telegram ID or create a new one.
        
        A changed username is written back on lookup.
        
        Args:
            db: Database session
            telegram_id: Telegram user/chat ID
            username: Optional Telegram username (without @)
            
        Returns:
            User object
        """
        user = await UserService.get_user_by_telegram_id(db, telegram_id)
        
        if user:
            if username and user.username != username:
                user.username = username
                user.updated_at = datetime.now(timezone.utc)
                await db.commit()
                await db.refresh(user)
            return user
        
        user = User(telegram_id=telegram_id, username=username)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        
        logger.info(f"Created new user: telegram_id={telegram_id}, username={username}")
        return user
    
    @staticmethod
    async def get_user_by_telegram_id(db: AsyncSession, telegram_id: int) -> Optional[User]:
        """Get user by Telegram ID."""
        result = await db.execute(
            select(User).where(User.telegram_id == telegram_id)
        )
        return result.scalar_one_or_none()
    
    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        """Get user by internal ID; this is the owner lookup used before delivery."""
        result = await db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()
