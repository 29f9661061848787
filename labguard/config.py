"""
Configuration loaded from environment variables (and an optional .env file).

Each subsystem has its own pydantic model; ``get_config`` caches the combined
``AppConfig`` for the lifetime of the process.
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = Field(default="sqlite:///./labguard_qc.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Log SQL statements")


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=8000, gt=0, lt=65536, description="API server port")
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="Allowed origins for CORS"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")


class ExportConfig(BaseModel):
    """CSV/Excel export settings."""

    csv_separator: str = Field(default=";", min_length=1, max_length=1)
    decimal: str = Field(default=",", min_length=1, max_length=1)
    date_format: str = Field(default="%d/%m/%Y", description="strftime format for dates in reports")

    @field_validator("decimal")
    def decimal_differs_from_separator(cls, v, info):
        if v == info.data.get("csv_separator"):
            raise ValueError("decimal mark must differ from the CSV separator")
        return v


class AppConfig(BaseModel):
    """Main application configuration."""

    seed_default_analytes: bool = Field(
        default=True, description="Seed default analyte configurations into an empty database"
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)


def _level_to_literal(val: str) -> LogLevel:
    v = val.strip().upper()
    return cast(LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO")


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""
    return AppConfig(
        seed_default_analytes=_parse_bool(os.getenv("SEED_DEFAULT_ANALYTES"), True),
        database=DatabaseConfig(
            url=os.getenv("DATABASE_URL", "sqlite:///./labguard_qc.db"),
            echo=_parse_bool(os.getenv("DATABASE_ECHO"), False),
        ),
        api=APIConfig(
            host=os.getenv("API_HOST", "0.0.0.0"),
            port=int(os.getenv("API_PORT", "8000")),
            allowed_origins=[o.strip() for o in os.getenv("API_ALLOWED_ORIGINS", "*").split(",") if o.strip()],
        ),
        logging=LoggingConfig(level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO"))),
        export=ExportConfig(
            csv_separator=os.getenv("EXPORT_CSV_SEPARATOR", ";"),
            decimal=os.getenv("EXPORT_DECIMAL", ","),
            date_format=os.getenv("EXPORT_DATE_FORMAT", "%d/%m/%Y"),
        ),
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
