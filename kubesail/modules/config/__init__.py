"""
Config Module - Black Box Interface

Purpose: Process-level configuration management
Interface: get_config(), ConfigModule.get(), ConfigModule.get_all()
Hidden: Config sources, validation logic, environment parsing

Component-level settings (cluster, verification, tenant database) live in
kubesail.config.provider as typed dataclasses.
"""

import os
from typing import Any, Dict


# Configuration Contract: Required and Optional Keys

REQUIRED_CONFIG_KEYS = {
    "redis_host": "Redis server hostname",
    "redis_port": "Redis server port number",
    "redis_db": "Redis database number",
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "task_workers": "Number of task processor workers",
    "task_queue_size": "Task processor queue capacity",
    "verify_workers": "Number of concurrent domain verification runs",
    "verify_queue_size": "Domain verification queue capacity",
    "audit_interval": "Seconds between periodic workload audits",
    "domain_check_interval": "Seconds between stale domain claim checks",
}

OPTIONAL_CONFIG_KEYS = {
    "redis_password": {
        "description": "Redis authentication password",
        "default": None,
    },
    "debug": {
        "description": "Enable debug mode",
        "default": False,
    },
}


def _parse_port(value: str) -> int:
    # K8s service links inject REDIS_PORT as tcp://host:port
    if value.startswith("tcp://"):
        return int(value.split(":")[-1])
    return int(value)


class ConfigModule:
    """Configuration management module."""

    def __init__(self):
        """Initialize with environment variables."""
        self._config = self._load_from_env()
        self._validate_required_keys()

    def _validate_required_keys(self) -> None:
        """
        Validate that all required configuration keys are present.

        Raises:
            ValueError: If required keys are missing or not positive
        """
        missing_keys = []
        for key in REQUIRED_CONFIG_KEYS:
            if key not in self._config or self._config[key] is None:
                missing_keys.append(key)

        if missing_keys:
            raise ValueError(
                f"Missing required configuration keys: {', '.join(missing_keys)}. "
                f"Check environment variables and deployment configuration."
            )

        for key in ("task_workers", "task_queue_size", "verify_workers", "verify_queue_size"):
            if self._config[key] <= 0:
                raise ValueError(f"Configuration key {key} must be positive, got {self._config[key]}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        return {
            # Redis settings
            "redis_host": os.getenv("REDIS_HOST", "kubesail-redis-master"),
            "redis_port": _parse_port(os.getenv("REDIS_PORT", "6379")),
            "redis_db": int(os.getenv("REDIS_DB", "0")),
            "redis_password": os.getenv("REDIS_PASSWORD"),
            # API settings
            "host": os.getenv("API_HOST", "0.0.0.0"),
            "port": int(os.getenv("API_PORT", "9901")),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
            "debug": os.getenv("DEBUG", "false").lower() == "true",
            # Job engine settings
            "task_workers": int(os.getenv("TASK_WORKERS", "4")),
            "task_queue_size": int(os.getenv("TASK_QUEUE_SIZE", "100")),
            "verify_workers": int(os.getenv("VERIFY_WORKERS", "16")),
            "verify_queue_size": int(os.getenv("VERIFY_QUEUE_SIZE", "256")),
            # Cron settings
            "audit_interval": float(os.getenv("AUDIT_INTERVAL", "300")),
            "domain_check_interval": float(os.getenv("DOMAIN_CHECK_INTERVAL", "600")),
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self._config.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self._config.copy()

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Get the configuration schema (contract) for this module.

        Returns:
            Dictionary with 'required' and 'optional' key specifications
        """
        return {
            "required": REQUIRED_CONFIG_KEYS.copy(),
            "optional": OPTIONAL_CONFIG_KEYS.copy(),
        }


# Singleton instance
_instance = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


__all__ = ["get_config", "ConfigModule"]
