import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coin_arena.domain.trading.dtos.agent_dto import TokenDTO
from coin_arena.infrastructure.database.models.user_model import UserModel

logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[UserModel]:
        stmt = select(UserModel).where(UserModel.id == user_id)
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def create(
        self,
        name: str,
        access_token: str = "",
        refresh_token: str = "",
        token_expires_at: Optional[datetime] = None,
        **extra,
    ) -> UserModel:
        model = UserModel(
            name=name,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=token_expires_at,
            **extra,
        )
        self.session.add(model)
        await self.session.flush()
        return model

    async def update_tokens(self, user_id: str, token: TokenDTO) -> Optional[UserModel]:
        """
        Persist a refreshed token pair. The commit is done by the caller.
        """
        model = await self.get_by_id(user_id)
        if not model:
            return None

        model.access_token = token.access_token
        model.refresh_token = token.refresh_token
        model.token_expires_at = datetime.now() + timedelta(seconds=token.expires_in)

        await self.session.flush()
        logger.info(f"🔑 Tokens refreshed for user={user_id}")
        return model
