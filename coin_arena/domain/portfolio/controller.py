from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from dependency_injector.wiring import inject, Provide

from coin_arena.commons.enums.trade_enums import PortfolioTypeEnum, SnapshotPeriodEnum
from coin_arena.domain.portfolio.portfolio_module import PortfolioModule
from coin_arena.domain.portfolio.portfolio_service import PortfolioService
from coin_arena.domain.portfolio.dtos.portfolio_dto import (
    EquityPointDTO,
    LeaderboardEntryDTO,
    PortfolioDTO,
    PortfolioViewDTO,
)
from coin_arena.domain.trading.errors import PortfolioNotFoundError, UserNotFoundError
from coin_arena.infrastructure.market.price_oracle_base import PriceOracleError


router = APIRouter(tags=["portfolio"])


@router.get("/portfolio/history", response_model=List[EquityPointDTO],
            summary="Daily equity curve")
@inject
async def equity_history(
    user_id: str,
    type: PortfolioTypeEnum = PortfolioTypeEnum.AI,
    period: SnapshotPeriodEnum = SnapshotPeriodEnum.ONE_MONTH,
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> List[EquityPointDTO]:
    try:
        return await service.get_equity_history(user_id, type, period)
    except PortfolioNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/portfolio/{user_id}/{type}", response_model=PortfolioViewDTO,
            summary="Valued portfolio")
@inject
async def get_portfolio(
    user_id: str,
    type: PortfolioTypeEnum,
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> PortfolioViewDTO:
    try:
        return await service.get_user_portfolio_view(user_id, type)
    except PortfolioNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PriceOracleError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/portfolio/{user_id}/{type}", response_model=PortfolioDTO,
             summary="Open a portfolio")
@inject
async def open_portfolio(
    user_id: str,
    type: PortfolioTypeEnum,
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> PortfolioDTO:
    try:
        return await service.open_portfolio(user_id, type)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/portfolio/{user_id}/{type}", status_code=status.HTTP_204_NO_CONTENT,
               summary="Close a portfolio")
@inject
async def close_portfolio(
    user_id: str,
    type: PortfolioTypeEnum,
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> None:
    try:
        await service.close_portfolio(user_id, type)
    except PortfolioNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/leaderboard", response_model=List[LeaderboardEntryDTO],
            summary="Portfolios ranked by total assets")
@inject
async def leaderboard(
    type: Optional[PortfolioTypeEnum] = Query(default=None),
    service: PortfolioService = Depends(Provide[PortfolioModule.portfolio_service]),
) -> List[LeaderboardEntryDTO]:
    try:
        return await service.get_leaderboard(type)
    except PriceOracleError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
