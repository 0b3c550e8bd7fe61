# Config Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Variables de entorno y .env
#   2) Validación de rutas y nivel de log
#
# EN: Quick index
#   1) Environment variables and .env
#   2) Path and log level validation

"""Configuración segura y validada de Urna.

Secure and validated Urna configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PATH = Path(".env")
_ENV_LOCAL_PATH = Path(".env.local")
load_dotenv(_ENV_PATH, override=False)
load_dotenv(_ENV_LOCAL_PATH, override=False)

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class UrnaSettings(BaseSettings):
    """Variables de entorno y archivo .env para Urna.

    English: Environment variables and .env file for Urna.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    STORAGE_PATH: Path
    LOG_LEVEL: str = "INFO"
    OPERATOR_IDENTITY: str = "admin"
    ELECTION_ID: Optional[str] = None
    CORS_ORIGINS: str = "*"
    API_RATE_LIMIT: int = Field(default=120, ge=1)

    @field_validator("LOG_LEVEL")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    @field_validator("OPERATOR_IDENTITY")
    @classmethod
    def _strip_identity(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("OPERATOR_IDENTITY cannot be empty")
        return cleaned

    def validate_paths(self) -> None:
        """Valida que las rutas críticas existan. / Validate that critical paths exist."""
        if not self.STORAGE_PATH.exists():
            raise ValueError(f"STORAGE_PATH does not exist: {self.STORAGE_PATH}")
        if not self.STORAGE_PATH.is_dir():
            raise ValueError(f"STORAGE_PATH is not a directory: {self.STORAGE_PATH}")

    def cors_origins(self) -> list[str]:
        raw = self.CORS_ORIGINS.strip()
        if raw == "*":
            return ["*"]
        return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_config() -> UrnaSettings:
    """Carga y valida configuración, fallando con detalle. / Load and validate configuration, failing with details."""
    try:
        settings = UrnaSettings()
        settings.validate_paths()
        return settings
    except ValidationError as exc:
        logging.getLogger(__name__).error("config_invalid errors=%s", exc.error_count())
        raise ValueError(f"Invalid configuration: {exc}") from exc
