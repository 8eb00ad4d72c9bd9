# chat_relay/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import Dict, List

class Settings(BaseSettings):
    database_url: str
    redis_url: str = 'redis://localhost:6379/0'

    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    port: int = 5050
    allowed_origins: List[str] = ['*']

    # Database pool (PostgreSQL only)
    db_pool_size: int = 15
    db_max_overflow: int = 25
    db_pool_timeout: int = 30
    db_command_timeout: int = 30
    db_echo: bool = False
    auto_create_tables: bool = False

    # Group lookup cache
    cache_enabled: bool = True
    cache_ttl_seconds: int = 3600

    # Authorization: 'allow_all' or 'http'
    auth_mode: str = 'allow_all'
    auth_service_urls: Dict[str, str] = {}
    auth_timeout_seconds: float = 5.0

    # Real-time delivery
    connection_queue_size: int = 100

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }

settings = Settings()
