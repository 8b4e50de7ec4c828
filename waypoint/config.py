from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class PersistenceConfig(BaseModel):
    """Where run state is stored and for how long."""

    database_url: Optional[str] = None
    ttl: int = 86400 * 7
    redis_prefix: str = "waypoint"


class ExecutorConfig(BaseModel):
    max_steps: int = Field(default=1000, ge=1)


class WaypointConfig(BaseModel):
    """Top-level configuration model."""

    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)


def load_config(path: Optional[str] = None) -> WaypointConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WAYPOINT_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("WAYPOINT_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = WaypointConfig(**data)
    else:
        config = WaypointConfig()

    env_db_url = os.getenv("WAYPOINT_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.persistence.database_url = env_db_url
    env_max_steps = os.getenv("WAYPOINT_MAX_STEPS")
    if env_max_steps:
        config.executor.max_steps = int(env_max_steps)
    return config
