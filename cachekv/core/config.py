"""Process settings for cachekv."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Declarative key/policy configuration (YAML)
    config_path: Optional[str] = None

    # Key rendering
    app_prefix: str = "app"
    separator: str = ":"

    # Fallbacks for keys without a policy
    fallback_ttl: int = 3600  # 1 hour
    fallback_null_cache_ttl: int = 300  # 5 minutes

    # Statistics counters
    stats_prefix: str = "cachekv:stats:"
    stats_ttl: int = 604800  # 7 days

    # Backend
    redis_url: Optional[str] = None

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "CACHEKV_"
        extra = "ignore"
