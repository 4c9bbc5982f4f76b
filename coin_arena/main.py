import logging.config

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coin_arena.infrastructure.config.settings import settings
from coin_arena.application.lifecycle import lifespan
from coin_arena.application.module_registry import register_modules

logging.config.dictConfig(settings.get_logging_config())


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_modules(app)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("coin_arena.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
