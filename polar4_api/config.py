"""
Runtime configuration, read from environment variables.

CSV_PATH, DATABASE_URL, HOST, PORT, ENVIRONMENT, ALLOWED_ORIGINS,
RATE_LIMIT, LOG_LEVEL, GRACEFUL_SHUTDOWN_SECONDS
"""

from __future__ import annotations

import logging
import os
import sys
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

ENV_FIELDS = {
    "CSV_PATH": "csv_path",
    "DATABASE_URL": "database_url",
    "HOST": "host",
    "PORT": "port",
    "ENVIRONMENT": "environment",
    "ALLOWED_ORIGINS": "allowed_origins",
    "RATE_LIMIT": "rate_limit",
    "LOG_LEVEL": "log_level",
    "GRACEFUL_SHUTDOWN_SECONDS": "graceful_shutdown_seconds",
}


class Settings(BaseModel):
    csv_path: str = "data/postcodes.csv"
    database_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    environment: str = "development"
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    rate_limit: int = Field(default=100, ge=1)
    log_level: str = "INFO"
    graceful_shutdown_seconds: int = Field(default=10, ge=0)

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [o.strip() for o in value.split(",") if o.strip()] or ["*"]
        return value

    @field_validator("environment", "log_level")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {
            field: environ[name]
            for name, field in ENV_FIELDS.items()
            if environ.get(name, "").strip()
        }
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
