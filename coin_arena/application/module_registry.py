from fastapi import FastAPI
from dependency_injector import providers
from coin_arena.application.container import container as root_container


def register_modules(app: FastAPI):
    # Register Health Module
    from coin_arena.domain.health.module import HealthModule
    from coin_arena.domain.health.controller import router as health_router

    health_container = HealthModule(
        root=providers.DependenciesContainer(
            db_client=root_container.db_client,
            scheduler=root_container.scheduler,
        )
    )
    health_container.wire(modules=["coin_arena.domain.health.controller"])

    app.include_router(health_router)
    app.state.health_container = health_container

    # Register Portfolio Module
    from coin_arena.domain.portfolio.portfolio_module import PortfolioModule
    from coin_arena.domain.portfolio.controller import router as portfolio_router

    portfolio_module = PortfolioModule(
        root=providers.DependenciesContainer(
            db_client=root_container.db_client,
            price_oracle=root_container.price_oracle,
            config=root_container.config,
        ),
    )
    portfolio_module.wire(modules=["coin_arena.domain.portfolio.controller"])

    app.include_router(portfolio_router)
    app.state.portfolio_module = portfolio_module

    # Register Trading Module
    from coin_arena.domain.trading.trading_module import TradingModule
    from coin_arena.domain.trading.controller import router as trading_router

    trading_module = TradingModule(
        root=providers.DependenciesContainer(
            db_client=root_container.db_client,
            price_oracle=root_container.price_oracle,
            secondme=root_container.secondme,
            snapshot_recorder=portfolio_module.snapshot_recorder,
            config=root_container.config,
        ),
    )
    trading_module.wire(modules=["coin_arena.domain.trading.controller"])

    app.include_router(trading_router)
    app.state.trading_module = trading_module
