from dependency_injector import containers, providers
from coin_arena.domain.portfolio.portfolio_service import PortfolioService
from coin_arena.domain.portfolio.snapshot_recorder import SnapshotRecorder


class PortfolioModule(containers.DeclarativeContainer):
    root = providers.DependenciesContainer()

    snapshot_recorder = providers.Factory(
        SnapshotRecorder,
        db_client=root.db_client,
        max_retries=root.config.provided.ledger_max_retries,
    )

    portfolio_service = providers.Factory(
        PortfolioService,
        db_client=root.db_client,
        price_oracle=root.price_oracle,
        initial_fund=root.config.provided.initial_fund,
    )
