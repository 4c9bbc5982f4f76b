"""
Pure ledger arithmetic: leveraged valuation, sale proceeds and cost blending.

Leverage here is a synthetic P&L multiplier. The cost basis stays
unleveraged and only the unrealized move `current_price - avg_cost` is
amplified, so at leverage 1 every formula reduces to plain market value.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Tuple

MIN_LEVERAGE = 1
MAX_LEVERAGE = 10

# Remaining quantity at or below this after a sell closes the holding
QUANTITY_EPSILON = 1e-5

# BUYs spending less than this many cash units are skipped
DUST_THRESHOLD = 1.0


class PositionLike(Protocol):
    symbol: str
    quantity: float
    avg_cost: float
    leverage: int


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def leveraged_market_value(
    quantity: float,
    avg_cost: float,
    current_price: float,
    leverage: float,
) -> float:
    """
    quantity × (avg_cost + (current_price − avg_cost) × leverage)

    Not floored: a deep leveraged loss goes negative and that is what
    drives liquidation.
    """
    return quantity * (avg_cost + (current_price - avg_cost) * leverage)


def leveraged_sale_proceeds(
    sell_qty: float,
    avg_cost: float,
    current_price: float,
    leverage: float,
) -> float:
    """Same formula as the market value, floored at 0."""
    return max(0.0, leveraged_market_value(sell_qty, avg_cost, current_price, leverage))


def blend_average_cost(
    old_avg_cost: float,
    old_quantity: float,
    price: float,
    new_quantity: float,
) -> float:
    total_quantity = old_quantity + new_quantity
    if total_quantity <= 0:
        return price
    return (old_avg_cost * old_quantity + price * new_quantity) / total_quantity


def clamp_leverage(value: Any) -> int:
    """
    Coerce anything a decision source sends into an integer leverage tier.

    None, booleans and non-numeric values become 1; numbers are rounded
    half-up and clamped into [MIN_LEVERAGE, MAX_LEVERAGE].
    """
    if value is None or isinstance(value, bool):
        return MIN_LEVERAGE
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return MIN_LEVERAGE
    if math.isnan(numeric) or math.isinf(numeric):
        return MIN_LEVERAGE
    return max(MIN_LEVERAGE, min(MAX_LEVERAGE, round_half_up(numeric)))


def weighted_leverage(tiers: Iterable[Tuple[float, int]]) -> int:
    """
    Quantity-weighted leverage of (quantity, leverage) pairs, rounded
    half-up. Used only for the aggregated SELL trade record.
    """
    total_qty = 0.0
    weighted = 0.0
    for quantity, leverage in tiers:
        total_qty += quantity
        weighted += quantity * leverage
    if total_qty <= 0:
        return MIN_LEVERAGE
    return round_half_up(weighted / total_qty)


def holdings_value(
    holdings: Iterable[PositionLike],
    prices: Mapping[str, float],
) -> float:
    """Leveraged value of all holdings, skipping symbols without a price."""
    value = 0.0
    for holding in holdings:
        price = prices.get(holding.symbol)
        if price is None:
            continue
        value += leveraged_market_value(
            holding.quantity,
            holding.avg_cost,
            price,
            holding.leverage,
        )
    return value


def total_assets(
    cash_balance: float,
    holdings: Iterable[PositionLike],
    prices: Mapping[str, float],
    liquidated: bool = False,
) -> float:
    if liquidated:
        return 0.0
    return cash_balance + holdings_value(holdings, prices)


def equity_breakdown(
    cash_balance: float,
    holdings: Iterable[PositionLike],
    prices: Mapping[str, float],
    liquidated: bool = False,
) -> Dict[str, float]:
    """cash / holdings / total split used by snapshots and views."""
    if liquidated:
        return {"cash_balance": 0.0, "holdings_value": 0.0, "total_assets": 0.0}

    value = holdings_value(holdings, prices)
    return {
        "cash_balance": cash_balance,
        "holdings_value": value,
        "total_assets": cash_balance + value,
    }


def profit_loss_percent(market_value: float, cost_value: float) -> float:
    if cost_value <= 0:
        return 0.0
    return (market_value - cost_value) / cost_value * 100


def merge_prices(
    base: Optional[Mapping[str, float]],
    extra: Optional[Mapping[str, float]],
) -> Dict[str, float]:
    merged: Dict[str, float] = dict(base or {})
    for symbol, price in (extra or {}).items():
        merged.setdefault(symbol, price)
    return merged
