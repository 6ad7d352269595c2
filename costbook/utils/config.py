"""
Configuration management for the Costbook application.

This module handles:
- Database path configuration
- Transaction retry settings
- Environment-specific configuration (development vs. production)
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_TRANSACTION_BACKOFF_SECONDS,
    DEFAULT_TRANSACTION_MAX_ATTEMPTS,
)

logger = logging.getLogger(__name__)

ENV_VAR_ENVIRONMENT = "COSTBOOK_ENV"
ENV_VAR_DATABASE_PATH = "COSTBOOK_DATABASE_PATH"
ENV_VAR_TX_MAX_ATTEMPTS = "COSTBOOK_TX_MAX_ATTEMPTS"
ENV_VAR_TX_BACKOFF = "COSTBOOK_TX_BACKOFF_SECONDS"


class Config:
    """
    Application configuration manager.

    Handles all configuration settings including database paths,
    environment settings, and transaction retry policy.
    """

    def __init__(self, environment: str = "production", database_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
            database_path: Optional explicit database file path
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if database_path is None and os.environ.get(ENV_VAR_DATABASE_PATH):
            database_path = Path(os.environ[ENV_VAR_DATABASE_PATH])

        if database_path is not None:
            self._database_path = Path(database_path)
            self._database_dir = self._database_path.parent
        else:
            if environment == "development":
                self._base_dir = self._get_project_data_dir()
            else:
                self._base_dir = self._get_user_data_dir()
            self._database_dir = self._base_dir
            self._database_path = self._database_dir / DATABASE_FILENAME

        self._transaction_max_attempts = _int_from_env(
            ENV_VAR_TX_MAX_ATTEMPTS, DEFAULT_TRANSACTION_MAX_ATTEMPTS
        )
        self._transaction_backoff_seconds = _float_from_env(
            ENV_VAR_TX_BACKOFF, DEFAULT_TRANSACTION_BACKOFF_SECONDS
        )

    def _get_project_data_dir(self) -> Path:
        """
        Get the project's data directory for development.

        Returns:
            Path to project data/ directory
        """
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """
        Get the per-user data directory for production.

        Returns:
            Path to ~/.costbook
        """
        return Path.home() / ".costbook"

    def ensure_directories(self):
        """Create the database directory if it doesn't exist."""
        self._database_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            Database URL string for SQLAlchemy
        """
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def transaction_max_attempts(self) -> int:
        """How many times a retryable unit of work may run before giving up."""
        return self._transaction_max_attempts

    @property
    def transaction_backoff_seconds(self) -> float:
        """Base delay between transaction retries (multiplied by attempt number)."""
        return self._transaction_backoff_seconds

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """
        Check if database file exists.

        Returns:
            True if database file exists, False otherwise
        """
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return (
            f"Config(environment='{self.environment}', " f"database_path='{self._database_path}')"
        )


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    return max(value, 1)


def _float_from_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default
    return max(value, 0.0)


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the process-level default configuration.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument. Only the command line entry point
    relies on this default; services receive an explicit Database handle.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    COSTBOOK_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VAR_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton to prevent database switching."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None
