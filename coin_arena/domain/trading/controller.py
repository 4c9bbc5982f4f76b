import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from dependency_injector.wiring import inject, Provide

from coin_arena.domain.trading.trading_module import TradingModule
from coin_arena.domain.trading.batch_orchestrator import BatchOrchestrator
from coin_arena.domain.trading.manual_trading_service import ManualTradingService
from coin_arena.domain.trading.dtos.batch_dto import (
    AccountResultDTO,
    BatchReportDTO,
    ManualTradeRequestDTO,
    ManualTradeResultDTO,
)
from coin_arena.domain.trading.errors import (
    LedgerConflictError,
    ManualTradeError,
    PortfolioLiquidatedError,
    PortfolioNotFoundError,
)
from coin_arena.infrastructure.market.price_oracle_base import PriceOracleError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["trading"])


def authorize(authorization: Optional[str], cron_secret: Optional[str]) -> None:
    """Trading routes only accept `Bearer <CRON_SECRET>`; without a secret they are closed."""
    if not cron_secret:
        logger.error("CRON_SECRET is not configured, rejecting trading request")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Trading endpoints are disabled",
        )
    if not authorization or not hmac.compare_digest(
        authorization.encode(), f"Bearer {cron_secret}".encode()
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post("/cron/trade", response_model=BatchReportDTO,
             summary="Run one AI trading batch")
@inject
async def run_trade_batch(
    authorization: Optional[str] = Header(default=None),
    cron_secret: Optional[str] = Depends(Provide[TradingModule.cron_secret]),
    orchestrator: BatchOrchestrator = Depends(Provide[TradingModule.batch_orchestrator]),
) -> BatchReportDTO:
    authorize(authorization, cron_secret)

    try:
        return await orchestrator.run_batch()
    except PriceOracleError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/trade/run/{user_id}", response_model=AccountResultDTO,
             summary="Run the AI pipeline for one account")
@inject
async def run_single_account(
    user_id: str,
    authorization: Optional[str] = Header(default=None),
    cron_secret: Optional[str] = Depends(Provide[TradingModule.cron_secret]),
    orchestrator: BatchOrchestrator = Depends(Provide[TradingModule.batch_orchestrator]),
) -> AccountResultDTO:
    authorize(authorization, cron_secret)
    return await orchestrator.run_single_account(user_id)


@router.post("/trade/manual", response_model=ManualTradeResultDTO,
             summary="Execute a manual trade")
@inject
async def manual_trade(
    request: ManualTradeRequestDTO,
    authorization: Optional[str] = Header(default=None),
    cron_secret: Optional[str] = Depends(Provide[TradingModule.cron_secret]),
    service: ManualTradingService = Depends(Provide[TradingModule.manual_trading_service]),
) -> ManualTradeResultDTO:
    authorize(authorization, cron_secret)

    try:
        return await service.execute_manual_trade(
            user_id=request.user_id,
            symbol=request.symbol,
            action=request.action,
            percentage=request.percentage,
            leverage=request.leverage,
        )
    except ManualTradeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PortfolioNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (PortfolioLiquidatedError, LedgerConflictError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except PriceOracleError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
