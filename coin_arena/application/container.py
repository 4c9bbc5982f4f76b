
from dependency_injector import containers, providers
from coin_arena.infrastructure.database.client import DatabaseClient
from coin_arena.infrastructure.config.settings import Settings
from coin_arena.infrastructure.market.binance import BinanceClient
from coin_arena.infrastructure.agents.secondme import SecondMeClient
from coin_arena.infrastructure.scheduler.scheduler import JobScheduler


class Container(containers.DeclarativeContainer):
    config = providers.Singleton(Settings)

    db_client = providers.Singleton(
        DatabaseClient,
        db_url=config().async_database_url,
        pool_size=config().db_pool_size,
        max_overflow=config().db_max_overflow,
        pool_timeout=config().db_pool_timeout,
        pool_recycle=config().db_pool_recycle,
        echo=config().db_echo,
    )

    price_oracle = providers.Singleton(
        BinanceClient,
        base_url=config().binance_api_base,
        symbols=config().market_symbol_list,
    )

    secondme = providers.Singleton(
        SecondMeClient,
        client_id=config().secondme_client_id,
        client_secret=config().secondme_client_secret,
        base_url=config().secondme_api_base,
        refresh_margin_seconds=config().token_refresh_margin_seconds,
    )

    scheduler = providers.Singleton(
        JobScheduler,
        timezone=config().scheduler_timezone,
    )


container = Container()
