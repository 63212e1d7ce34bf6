"""
Paycadence configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class StoreConfig(BaseModel):
    """Which store backend to use and how to reach it."""

    backend: str = Field(
        default="memory",
        description="Store backend: memory, sql, or a dotted path to a BaseExpenseStore subclass",
    )
    url: str = Field(default="sqlite:///paycadence.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Log every SQL statement")
    options: dict[str, Any] = Field(default_factory=dict)


class PaycadenceConfig(BaseModel):
    """Root configuration for Paycadence."""

    store: StoreConfig = Field(default_factory=StoreConfig)

    timezone: str | None = Field(
        default=None,
        description="IANA timezone used to read today's date (host local time if unset)",
    )
    upcoming_count: int = Field(default=3, ge=1, description="Upcoming occurrences per template")
    catch_up_missed: bool = Field(
        default=True,
        description="Generate every missed period of a dormant template on each view, not just one",
    )
    max_catch_up: int = Field(default=120, ge=1)
    seed_default_categories: bool = True

    currency: str = Field(default="USD")
    log_level: str = Field(default="WARNING", description="Level for paycadence loggers when run from the CLI")

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> PaycadenceConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        env_backend = os.environ.get("PAYCADENCE_STORE")
        env_url = os.environ.get("PAYCADENCE_DATABASE_URL")
        env_tz = os.environ.get("PAYCADENCE_TIMEZONE")
        env_catch_up = os.environ.get("PAYCADENCE_CATCH_UP")

        if env_backend or env_url:
            store = data.get("store", {})
            if env_backend:
                store["backend"] = env_backend
            if env_url:
                store["url"] = env_url
                # a database URL without an explicit backend implies SQL
                store.setdefault("backend", "sql")
            data["store"] = store

        if env_tz:
            data["timezone"] = env_tz

        if env_catch_up:
            data["catch_up_missed"] = env_catch_up.lower() in ("1", "true", "yes")

        # 3. Apply keyword overrides
        data.update(overrides)

        return cls.model_validate(data)
