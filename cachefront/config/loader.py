"""
cachefront - Configuration Loader

Loads and validates configuration from environment variables and .env files.
Provides a singleton configuration instance for the process.
"""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError

from ..errors import ConfigurationError
from .schemas import DEFAULT_PREFIX, CacheConfig

logger = logging.getLogger(__name__)

_config_instance: CacheConfig | None = None


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _build_config_dict() -> dict[str, Any]:
    """Map environment variables onto the CacheConfig structure."""
    prefix = os.getenv("CACHE_PREFIX", DEFAULT_PREFIX)
    drivers: dict[str, Any] = {}

    if _env_bool("CACHE_MEMORY_ENABLED"):
        drivers["memory"] = {
            "enabled": True,
            "default_ttl": int(os.getenv("CACHE_MEMORY_TTL", "0")),
            "serializer": os.getenv("CACHE_MEMORY_SERIALIZER", "json"),
            "max_size": int(os.getenv("CACHE_MEMORY_MAX_SIZE", "1000")),
            "prefix": prefix,
        }

    if _env_bool("CACHE_FILE_ENABLED"):
        drivers["file"] = {
            "enabled": True,
            "path": os.getenv("CACHE_FILE_PATH", "./storage/cache"),
            "default_ttl": int(os.getenv("CACHE_FILE_TTL", "0")),
            "serializer": os.getenv("CACHE_FILE_SERIALIZER", "json"),
            "prefix": prefix,
        }

    # Auto-enable redis when REDIS_URL is set, unless explicitly disabled
    redis_url = os.getenv("REDIS_URL")
    if _env_bool("CACHE_REDIS_ENABLED", "true" if redis_url else "false"):
        drivers["redis"] = {
            "enabled": True,
            "url": redis_url or "redis://localhost:6379/0",
            "default_ttl": int(os.getenv("CACHE_REDIS_TTL", "0")),
            "serializer": os.getenv("CACHE_REDIS_SERIALIZER", "json"),
            "max_connections": int(os.getenv("REDIS_MAX_CONNECTIONS", "10")),
            "socket_timeout": int(os.getenv("REDIS_SOCKET_TIMEOUT", "5")),
            "prefix": prefix,
        }

    # Auto-enable mongodb when MONGODB_URL is set, unless explicitly disabled
    mongodb_url = os.getenv("MONGODB_URL")
    if _env_bool("CACHE_MONGODB_ENABLED", "true" if mongodb_url else "false"):
        drivers["mongodb"] = {
            "enabled": True,
            "url": mongodb_url or "mongodb://localhost:27017",
            "database": os.getenv("CACHE_MONGODB_DATABASE", "cache"),
            "collection": os.getenv("CACHE_MONGODB_COLLECTION", "cache_entries"),
            "default_ttl": int(os.getenv("CACHE_MONGODB_TTL", "0")),
            "serializer": os.getenv("CACHE_MONGODB_SERIALIZER", "json"),
            "server_selection_timeout_ms": int(os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "5000")),
            "prefix": prefix,
        }

    return {
        "default_driver": os.getenv("CACHE_DEFAULT_DRIVER") or None,
        "log_level": os.getenv("CACHE_LOG_LEVEL", "INFO").upper(),
        "drivers": drivers,
    }


def load_config(
    env_file: str | None = None,
    reload: bool = False,
) -> CacheConfig:
    """
    Load configuration from environment variables and .env file.

    Args:
        env_file: Path to .env file (default: .env in the working directory)
        reload: Force reload even if config already loaded

    Returns:
        Validated CacheConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    global _config_instance

    if _config_instance is not None and not reload:
        return _config_instance

    env_path = Path(env_file) if env_file else Path.cwd() / ".env"

    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        try:
            load_dotenv(env_path, override=True)
        except Exception as e:
            logger.error(
                f"Failed to load .env file from {env_path}: {e}",
                extra={"path": str(env_path), "error": str(e)},
                exc_info=True,
            )
            raise ConfigurationError(
                f"Failed to load environment file: {e}",
                details={"path": str(env_path), "error": str(e)},
            ) from e
    else:
        logger.debug("No .env file found, using environment variables only")

    try:
        config_dict = _build_config_dict()
    except ValueError as e:
        # int() on a malformed numeric variable
        raise ConfigurationError(
            f"Invalid numeric cache setting: {e}",
            details={"error": str(e)},
        ) from e

    try:
        _config_instance = CacheConfig(**config_dict)
        logger.info(
            f"Configuration loaded (drivers: {', '.join(config_dict['drivers']) or 'none'})",
            extra={"drivers": list(config_dict["drivers"]), "default_driver": _config_instance.default_driver},
        )
        return _config_instance
    except ValidationError as e:
        logger.error(
            f"Configuration validation failed: {e}",
            extra={"validation_errors": e.errors()},
        )
        raise ConfigurationError(
            "Configuration validation failed. Check your environment variables and configuration.",
            details={"validation_errors": e.errors()},
        ) from e


def get_config() -> CacheConfig:
    """
    Get the current configuration instance, loading it on first access.

    Returns:
        Current CacheConfig instance
    """
    if _config_instance is None:
        return load_config()

    return _config_instance


def reload_config(env_file: str | None = None) -> CacheConfig:
    """
    Force reload configuration.

    Args:
        env_file: Optional path to .env file

    Returns:
        Reloaded CacheConfig instance
    """
    return load_config(env_file=env_file, reload=True)


def reset_config() -> None:
    """Drop the cached configuration instance. Intended for tests."""
    global _config_instance
    _config_instance = None
