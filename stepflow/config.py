from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel


class EngineConfig(BaseModel):
    """Tuning knobs for the workflow engine."""

    max_conflict_retries: int = 3


class PaymentsConfig(BaseModel):
    """Payment provider settings."""

    backend: Literal["inmemory"] = "inmemory"
    default_currency: str = "usd"


class ServerConfig(BaseModel):
    """HTTP adapter bind address."""

    host: str = "127.0.0.1"
    port: int = 8000


class StepflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    log_level: str = "INFO"
    engine: EngineConfig = EngineConfig()
    payments: PaymentsConfig = PaymentsConfig()
    server: ServerConfig = ServerConfig()


def load_config(path: Optional[str] = None) -> StepflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STEPFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("STEPFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StepflowConfig(**data)
    else:
        config = StepflowConfig()

    env_db_url = os.getenv("STEPFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_level = os.getenv("STEPFLOW_LOG_LEVEL")
    if env_level:
        config.log_level = env_level
    return config
