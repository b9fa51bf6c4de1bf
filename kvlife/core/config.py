"""
Configuration management for kvlife.

Loads settings from YAML config file and environment, and provides typed access.
Fixed policy parameters (TTLs, page size, vote score) are not configuration;
they live in kvlife.cache_policy.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of kvlife package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


@dataclass
class KvlifeConfig:
    """Configuration for the store connection and the background loops."""

    # Redis connection
    redis_url: Optional[str] = None     # e.g. rediss://... (Upstash); wins over host/port
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    socket_timeout: float = 2.0

    # Session reaper
    session_limit: int = 10_000_000     # Live sessions kept in recent:
    reaper_batch_size: int = 100        # Max sessions evicted per iteration
    reaper_idle_interval: float = 1.0   # Seconds to wait when under the limit

    # Row cache scheduler
    scheduler_poll_interval: float = 0.05

    # Retry policy for store errors and failed row materialization
    retry_backoff_initial: float = 0.5
    retry_backoff_max: float = 30.0

    # Bounded wait for a loop to observe its stop signal
    shutdown_timeout: float = 5.0

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "KvlifeConfig":
        """Load configuration from YAML file, then apply environment overrides."""
        path = config_path or DEFAULT_CONFIG_PATH
        data = {}
        if path.exists():
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}

        redis_config = data.get('redis', {})
        reaper_config = data.get('reaper', {})
        scheduler_config = data.get('scheduler', {})
        retry_config = data.get('retry', {})

        return cls(
            redis_url=os.getenv("UPSTASH_REDIS_URL") or redis_config.get('url'),
            redis_host=os.getenv("REDIS_HOST", redis_config.get('host', 'localhost')),
            redis_port=int(os.getenv("REDIS_PORT", redis_config.get('port', 6379))),
            redis_db=int(os.getenv("REDIS_DB", redis_config.get('db', 0))),
            socket_timeout=float(redis_config.get('socket_timeout', 2.0)),
            session_limit=int(reaper_config.get('session_limit', 10_000_000)),
            reaper_batch_size=int(reaper_config.get('batch_size', 100)),
            reaper_idle_interval=float(reaper_config.get('idle_interval', 1.0)),
            scheduler_poll_interval=float(scheduler_config.get('poll_interval', 0.05)),
            retry_backoff_initial=float(retry_config.get('backoff_initial', 0.5)),
            retry_backoff_max=float(retry_config.get('backoff_max', 30.0)),
            shutdown_timeout=float(data.get('shutdown_timeout', 5.0)),
        )


# Global config instance
_config: Optional[KvlifeConfig] = None


def get_config() -> KvlifeConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = KvlifeConfig.from_yaml()
    return _config


def set_config(config: KvlifeConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
