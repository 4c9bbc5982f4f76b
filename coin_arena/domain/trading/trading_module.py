from dependency_injector import containers, providers
from coin_arena.domain.trading.trade_executor import TradeExecutor
from coin_arena.domain.trading.liquidation import LiquidationMonitor
from coin_arena.domain.trading.batch_orchestrator import BatchOrchestrator
from coin_arena.domain.trading.manual_trading_service import ManualTradingService
from coin_arena.domain.trading.jobs.trade_batch_job import TradeBatchJob


class TradingModule(containers.DeclarativeContainer):
    root = providers.DependenciesContainer()

    trade_executor = providers.Factory(
        TradeExecutor,
        db_client=root.db_client,
        price_oracle=root.price_oracle,
        max_retries=root.config.provided.ledger_max_retries,
    )

    liquidation_monitor = providers.Factory(
        LiquidationMonitor,
        db_client=root.db_client,
        max_retries=root.config.provided.ledger_max_retries,
    )

    batch_orchestrator = providers.Singleton(
        BatchOrchestrator,
        db_client=root.db_client,
        price_oracle=root.price_oracle,
        decision_source=root.secondme,
        auth_client=root.secondme,
        executor=trade_executor,
        liquidation=liquidation_monitor,
        snapshots=root.snapshot_recorder,
        concurrency=root.config.provided.batch_concurrency,
        max_decisions=root.config.provided.max_decisions_per_run,
    )

    manual_trading_service = providers.Factory(
        ManualTradingService,
        db_client=root.db_client,
        price_oracle=root.price_oracle,
        executor=trade_executor,
        liquidation=liquidation_monitor,
    )

    trade_batch_job = providers.Factory(
        TradeBatchJob,
        orchestrator=batch_orchestrator,
    )

    cron_secret = root.config.provided.cron_secret
