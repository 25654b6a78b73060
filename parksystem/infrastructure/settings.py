# File: parksystem/infrastructure/settings.py
"""
Runtime settings and logging setup.

Settings come from the process environment, after a local .env file (if
any) has been loaded with python-dotenv:

    PARKSYSTEM_STORE      memory | redis | sql     (default: memory)
    REDIS_URL             redis://localhost:6379/0
    DATABASE_URL          sqlite:///./parksystem.db
    PARKSYSTEM_NAMESPACE  key prefix for the key-value store (parking_system)
    PARKSYSTEM_LOG_LEVEL  DEBUG | INFO | WARNING | ERROR  (default: INFO)
    PARKSYSTEM_SEED_DEMO  seed demo history on first run (default: true)
"""

from typing import Optional
import logging
import os
import sys

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Process settings for the storage backend and logging"""
    store: str = Field(default="memory", description="Storage backend")
    redis_url: str = Field(default="redis://localhost:6379/0")
    database_url: str = Field(default="sqlite:///./parksystem.db")
    namespace: str = Field(default="parking_system", min_length=1)
    log_level: str = Field(default="INFO")
    seed_demo: bool = Field(default=True)

    @field_validator('store')
    @classmethod
    def validate_store(cls, v):
        v = v.strip().lower()
        if v not in ("memory", "redis", "sql"):
            raise ValueError(f"Unknown store backend: {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        v = v.strip().upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> 'Settings':
        """Load .env (without overriding real environment variables) and read settings"""
        load_dotenv(env_file)
        return cls(
            store=os.getenv("PARKSYSTEM_STORE", "memory"),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./parksystem.db"),
            namespace=os.getenv("PARKSYSTEM_NAMESPACE", "parking_system"),
            log_level=os.getenv("PARKSYSTEM_LOG_LEVEL", "INFO"),
            seed_demo=os.getenv("PARKSYSTEM_SEED_DEMO", "true").strip().lower() in _TRUTHY,
        )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Setup application logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    return logging.getLogger("parksystem")
