import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from coin_arena.domain.trading.dtos.agent_dto import PersonalityDTO, TokenDTO
from coin_arena.domain.trading.dtos.decision_dto import DecisionDTO, decode_decisions
from coin_arena.infrastructure.agents.decision_source_base import (
    AuthClient,
    AuthenticationError,
    DecisionSource,
    DecisionSourceError,
)

logger = logging.getLogger(__name__)


ACTION_CONTROL = """Output a valid JSON array only, no explanations.
Schema: [{"action": "BUY"|"SELL"|"HOLD", "symbol": "BTCUSDT", "percentage": 0-100, "leverage": 1-10, "reason": "short reason", "monologue": "your inner monologue"}]
You are a virtual cryptocurrency trader. Decide based on the market data you are given.
Rules:
1. action is BUY, SELL or HOLD
2. for BUY, percentage is the share of available cash to spend
3. for SELL, percentage is the share of the position to close
4. leverage is an integer between 1 and 10; higher leverage amplifies both gains and losses
5. HOLD means no operation
6. at most 3 decisions per answer
7. if information is insufficient answer [{"action": "HOLD", "symbol": "BTCUSDT", "percentage": 0, "reason": "not enough information"}]"""


class SecondMeClient(DecisionSource, AuthClient):
    """
    SecondMe agent API: streamed trade decisions, personalization context
    and OAuth token refresh.
    """

    BASE_URL = "https://app.mindos.com/gate/lab"

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        base_url: Optional[str] = None,
        refresh_margin_seconds: int = 300,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.refresh_margin = timedelta(seconds=refresh_margin_seconds)
        transport = httpx.AsyncHTTPTransport(retries=2)
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=timeout,
        )

    async def close(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    def is_expiring_soon(self, expires_at: Optional[datetime]) -> bool:
        if expires_at is None:
            return True
        return datetime.now() >= expires_at - self.refresh_margin

    async def refresh(self, refresh_token: str) -> TokenDTO:
        logger.info("Refreshing SecondMe token")

        try:
            response = await self.client.post(
                "/api/oauth/token/refresh",
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Token refresh failed: {e}")
            raise AuthenticationError(f"Token refresh failed: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Unexpected error during token refresh: {e}")
            raise AuthenticationError(f"Unexpected error: {e}") from e

        data = self._unwrap(payload, "Token refresh", AuthenticationError)
        try:
            return TokenDTO(
                access_token=data["accessToken"],
                refresh_token=data["refreshToken"],
                expires_in=int(data["expiresIn"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AuthenticationError(f"Malformed token payload: {data}") from e

    # ------------------------------------------------------------------
    # Personalization
    # ------------------------------------------------------------------
    async def get_personality(self, access_token: str) -> PersonalityDTO:
        """
        Interest tags and soft memories. Either part degrades to an empty
        list on failure; personalization never fails an account.
        """
        shades = await self._get_texts(
            "/api/secondme/user/shades", access_token, "shades", "shadeName"
        )
        memories = await self._get_texts(
            "/api/secondme/user/softmemory", access_token, "list", "factContent"
        )
        return PersonalityDTO(shades=shades, memories=memories)

    async def _get_texts(
        self,
        path: str,
        access_token: str,
        list_key: str,
        text_key: str,
    ) -> List[str]:
        try:
            response = await self.client.get(
                path,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            data = self._unwrap(response.json(), path, DecisionSourceError)
        except (httpx.HTTPError, ValueError, DecisionSourceError) as e:
            logger.warning(f"Personalization fetch {path} failed, using empty: {e}")
            return []

        items = data.get(list_key, []) if isinstance(data, dict) else data
        texts: List[str] = []
        for item in items or []:
            if isinstance(item, str):
                texts.append(item)
            elif isinstance(item, dict) and item.get(text_key):
                texts.append(str(item[text_key]))
        return texts

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------
    async def get_decisions(
        self,
        access_token: str,
        market_summary: str,
        personality: Optional[PersonalityDTO] = None,
        style_persona: Optional[str] = None,
    ) -> List[DecisionDTO]:
        message = self._build_message(market_summary, personality, style_persona)

        try:
            response = await self.client.post(
                "/api/secondme/act/stream",
                headers={"Authorization": f"Bearer {access_token}"},
                json={"message": message, "actionControl": ACTION_CONTROL},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Act API request failed: {e}")
            raise DecisionSourceError(
                f"Act API error: {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Unexpected error calling Act API: {e}")
            raise DecisionSourceError(f"Act API request error: {e}") from e

        content = self.collect_stream_content(response.text)
        return decode_decisions(content)

    @staticmethod
    def collect_stream_content(body: str) -> str:
        """Concatenate `choices[0].delta.content` from SSE `data:` lines."""
        content = []
        for line in body.splitlines():
            if not line.startswith("data: ") or line == "data: [DONE]":
                continue
            try:
                chunk = json.loads(line[len("data: "):])
            except json.JSONDecodeError:
                continue
            choices = chunk.get("choices") if isinstance(chunk, dict) else None
            if not choices:
                continue
            delta = (choices[0] or {}).get("delta") or {}
            if delta.get("content"):
                content.append(delta["content"])
        return "".join(content)

    @staticmethod
    def _build_message(
        market_summary: str,
        personality: Optional[PersonalityDTO],
        style_persona: Optional[str],
    ) -> str:
        parts = []
        if style_persona:
            parts.append(f"Your trading persona:\n{style_persona}")
        if personality and not personality.is_empty:
            if personality.bio:
                parts.append(f"About you: {personality.bio}")
            if personality.shades:
                parts.append("Your interests: " + ", ".join(personality.shades))
            if personality.memories:
                parts.append("Things you remember:\n" + "\n".join(
                    f"- {m}" for m in personality.memories[:10]
                ))
        parts.append(market_summary)
        return "\n\n".join(parts)

    @staticmethod
    def _unwrap(payload: Any, what: str, error_cls) -> Dict[str, Any]:
        if not isinstance(payload, dict) or payload.get("code") != 0:
            message = payload.get("message") if isinstance(payload, dict) else payload
            raise error_cls(f"{what} failed: {message}")
        return payload.get("data") or {}
