from datetime import datetime
from typing import Protocol, List, Optional

from coin_arena.domain.trading.dtos.agent_dto import PersonalityDTO, TokenDTO
from coin_arena.domain.trading.dtos.decision_dto import DecisionDTO


class DecisionSource(Protocol):
    async def get_decisions(
        self,
        access_token: str,
        market_summary: str,
        personality: Optional[PersonalityDTO] = None,
        style_persona: Optional[str] = None,
    ) -> List[DecisionDTO]: ...

    async def get_personality(self, access_token: str) -> PersonalityDTO: ...


class AuthClient(Protocol):
    def is_expiring_soon(self, expires_at: Optional[datetime]) -> bool: ...

    async def refresh(self, refresh_token: str) -> TokenDTO: ...


class DecisionSourceError(Exception):
    """Decision provider failed or returned an unusable response."""
    pass


class AuthenticationError(DecisionSourceError):
    """Token refresh / authentication error with the decision provider."""
    pass
