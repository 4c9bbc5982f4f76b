import json
import logging
import re
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from coin_arena.commons.enums.trade_enums import TradeActionEnum
from coin_arena.domain.ledger.ledger_math import clamp_leverage

logger = logging.getLogger(__name__)

DEFAULT_SYMBOL = "BTCUSDT"

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


class DecisionDTO(BaseModel):
    """
    One trade instruction from a decision source.

    - BUY: percentage of available cash to spend
    - SELL: percentage of every holding of the symbol to close
    - HOLD: no operation
    """

    model_config = ConfigDict(extra="ignore")

    action: TradeActionEnum
    symbol: str = Field(..., min_length=1)
    percentage: float = Field(default=0.0, ge=0.0, le=100.0)
    leverage: int = 1
    reason: str = ""
    monologue: Optional[str] = None

    @field_validator("action", mode="before")
    @classmethod
    def normalize_action(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("symbol", mode="before")
    @classmethod
    def normalize_symbol(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("leverage", mode="before")
    @classmethod
    def coerce_leverage(cls, v: Any) -> int:
        return clamp_leverage(v)

    @field_validator("reason", mode="before")
    @classmethod
    def coerce_reason(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def is_hold(self) -> bool:
        return self.action == TradeActionEnum.HOLD


class DecisionDecodeError(ValueError):
    """Provider payload could not be decoded into decisions."""
    pass


_DECISIONS_ADAPTER = TypeAdapter(List[DecisionDTO])


def hold_decision(reason: str = "Malformed decision payload, holding") -> DecisionDTO:
    return DecisionDTO(
        action=TradeActionEnum.HOLD,
        symbol=DEFAULT_SYMBOL,
        percentage=0.0,
        reason=reason,
    )


def parse_decisions(content: str) -> List[DecisionDTO]:
    """
    Strict decode of a provider payload.

    Accepts a JSON array of decisions or a single decision object,
    optionally wrapped in a markdown code fence.

    Raises:
        DecisionDecodeError: if the payload is not valid JSON or any
            decision fails validation
    """
    text = _FENCE_RE.sub("", (content or "").strip())
    if not text:
        raise DecisionDecodeError("Empty decision payload")

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecisionDecodeError(f"Invalid JSON: {e}") from e

    if isinstance(raw, dict):
        raw = [raw]

    try:
        return _DECISIONS_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise DecisionDecodeError(f"Invalid decision payload: {e}") from e


def decode_decisions(content: str) -> List[DecisionDTO]:
    """Like parse_decisions, but a decode failure becomes one HOLD."""
    try:
        return parse_decisions(content)
    except DecisionDecodeError as e:
        logger.warning(f"⚠️ Could not decode decisions, falling back to HOLD: {e}")
        return [hold_decision()]
