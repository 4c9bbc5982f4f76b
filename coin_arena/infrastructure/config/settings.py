from pathlib import Path
from dotenv import load_dotenv

ENV_PATH = Path(__file__).resolve().parents[3] / ".env"  # noqa: E402
load_dotenv(dotenv_path=ENV_PATH)  # noqa: E402

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List, Optional, Literal
from enum import Enum
import logging


logger = logging.getLogger(__name__)


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    # ============= DATABASE =============
    db_url: str = Field(
        ...,
        description="PostgreSQL (or SQLite for local runs) connection URL"
    )
    db_pool_size: int = Field(
        default=5,
        ge=1,
        le=50
    )
    db_max_overflow: int = Field(
        default=10,
        ge=0,
        le=100
    )
    db_pool_timeout: int = Field(
        default=30,
        ge=1
    )
    db_pool_recycle: int = Field(
        default=3600,
        description="Recycle connections after N seconds"
    )
    db_echo: bool = Field(
        default=False,
        description="Log all SQL statements"
    )

    # ============= APPLICATION =============
    app_name: str = Field(default="Coin Arena")
    app_version: str = Field(default="1.0.0")
    environment: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=False)

    # ============= LOGGING =============
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # ============= CORS =============
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000"
    )

    # ============= SCHEDULER  =============
    scheduler_enabled: bool = Field(default=True)
    scheduler_timezone: str = Field(default="UTC")
    trade_cron: str = Field(
        default="0 * * * *",
        description="CRON expression for the AI trading batch"
    )

    # ============= TRADING =============
    initial_fund: float = Field(default=100_000.0, gt=0)
    batch_concurrency: int = Field(default=5, ge=1, le=100)
    max_decisions_per_run: int = Field(default=3, ge=1, le=10)
    ledger_max_retries: int = Field(default=3, ge=1, le=10)

    # ============= MARKET DATA =============
    binance_api_base: str = Field(default="https://api.binance.com")
    market_symbols: Optional[str] = Field(
        default=None,
        description="Comma-separated symbol list for the market snapshot"
    )

    # ============= SECONDME =============
    secondme_api_base: str = Field(default="https://app.mindos.com/gate/lab")
    secondme_client_id: str = Field(default="")
    secondme_client_secret: str = Field(default="")
    token_refresh_margin_seconds: int = Field(default=300, ge=0)

    # ============= SECURITY =============
    cron_secret: Optional[str] = Field(
        default=None,
        description="Bearer token required by the trading routes; unset disables them"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        validate_default=True,
        env_prefix="",
    )

    # ============= COMPUTED PROPERTIES =============
    @property
    def async_database_url(self) -> str:
        if self.db_url.startswith("postgresql://"):
            return self.db_url.replace("postgresql://", "postgresql+asyncpg://")
        elif self.db_url.startswith("postgresql+psycopg://"):
            return self.db_url.replace("postgresql+psycopg://", "postgresql+asyncpg://")
        elif self.db_url.startswith("sqlite://"):
            return self.db_url.replace("sqlite://", "sqlite+aiosqlite://")
        return self.db_url

    @property
    def market_symbol_list(self) -> Optional[List[str]]:
        if not self.market_symbols:
            return None
        return [s.strip().upper() for s in self.market_symbols.split(",") if s.strip()]

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    # ============= VALIDATORS =============
    @field_validator("db_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v:
            raise ValueError("Database URL cannot be empty")
        prefixes = [
            "postgresql://",
            "postgresql+asyncpg://",
            "postgresql+psycopg://",
            "sqlite://",
            "sqlite+aiosqlite://",
        ]
        if not any(v.startswith(prefix) for prefix in prefixes):
            raise ValueError("Database URL must be a PostgreSQL or SQLite URL")
        return v

    @field_validator("trade_cron")
    @classmethod
    def validate_trade_cron(cls, v: str) -> str:
        if len(v.split()) != 5:
            raise ValueError("trade_cron must be a 5-field CRON expression")
        return v

    def get_logging_config(self) -> dict:
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": self.log_format
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": self.log_level,
                }
            },
            "root": {
                "level": self.log_level,
                "handlers": ["console"]
            },
            "loggers": {
                "uvicorn": {
                    "level": self.log_level,
                    "handlers": ["console"],
                    "propagate": False
                },
                "httpx": {
                    "level": "WARNING",
                    "handlers": ["console"],
                    "propagate": False
                },
                "apscheduler": {
                    "level": "WARNING",
                    "handlers": ["console"],
                    "propagate": False
                },
                "sqlalchemy.engine": {
                    "level": "INFO" if self.db_echo else "WARNING",
                    "handlers": ["console"],
                    "propagate": False
                }
            }
        }


settings = Settings()
