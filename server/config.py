"""
Configuration for the pet store service.

``Settings`` reads every value from environment variables when it is
instantiated.  The legacy variable names of the original deployment
(``redisURI`` and ``port``) are still honoured as fallbacks so existing
container definitions keep working.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env(name: str, default: str, legacy: Optional[str] = None) -> str:
    value = os.getenv(name)
    if value is None and legacy:
        value = os.getenv(legacy)
    return value if value is not None else default


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = field(default_factory=lambda: _env("PROJECT_NAME", "Pet Store API"))

    # "redis" for a live server, "memory" for a process-local store
    store_type: str = field(default_factory=lambda: _env("STORE_TYPE", "redis"))
    redis_host: str = field(default_factory=lambda: _env("REDIS_HOST", "127.0.0.1", legacy="redisURI"))
    redis_port: int = field(default_factory=lambda: int(_env("REDIS_PORT", "6379")))
    redis_db: int = field(default_factory=lambda: int(_env("REDIS_DB", "0")))
    # Seconds allowed for the initial connect; commands themselves have no timeout.
    redis_connect_timeout: float = field(default_factory=lambda: float(_env("REDIS_CONNECT_TIMEOUT", "1.5")))

    host: str = field(default_factory=lambda: _env("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(_env("PORT", "8080", legacy="port")))

    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE") or None)

    def kv_client_kwargs(self) -> dict:
        """Keyword arguments for ``kv_client.get_kv_client`` matching ``store_type``."""
        if self.store_type == "redis":
            return {
                "host": self.redis_host,
                "port": self.redis_port,
                "db": self.redis_db,
                "connect_timeout": self.redis_connect_timeout,
            }
        return {}


# Environment variables must be set before this module is imported.
settings = Settings()
