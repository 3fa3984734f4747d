"""
Configuration management for the dispatcher payroll engine.

Handles loading and accessing:
- Business configuration (config.yaml)
- Environment variables
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentSettings(BaseSettings):
    """Environment variables configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field("sqlite:///./dispatch_payroll.db", alias="DATABASE_URL")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")


class ConfigManager:
    """
    Central configuration manager for the payroll engine.

    Loads and provides access to:
    - Business configuration from config/config.yaml
    - Environment variables from .env
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_dir: Optional path to config directory. Defaults to project root/config.
        """
        if config_dir is None:
            project_root = Path(__file__).parent.parent.parent
            config_dir = project_root / "config"

        self.config_dir = config_dir
        self._business_config: Optional[dict[str, Any]] = None
        self._env_settings: Optional[EnvironmentSettings] = None

    @property
    def business_config(self) -> dict[str, Any]:
        """Load and return business configuration from config.yaml.

        A missing file yields an empty configuration so that every section
        falls back to its defaults.
        """
        if self._business_config is None:
            config_path = self.config_dir / "config.yaml"
            if config_path.exists():
                with open(config_path, "r") as f:
                    self._business_config = yaml.safe_load(f) or {}
            else:
                self._business_config = {}
        return self._business_config

    @property
    def env(self) -> EnvironmentSettings:
        """Load and return environment settings."""
        if self._env_settings is None:
            self._env_settings = EnvironmentSettings()
        return self._env_settings

    def get_company_info(self) -> dict[str, Any]:
        """Get company information from business config."""
        return self.business_config.get("company", {})

    def get_storage_config(self) -> dict[str, Any]:
        """Get storage configuration from business config."""
        return self.business_config.get("storage", {})

    def get_logging_config(self) -> dict[str, Any]:
        """
        Get logging configuration.

        Values in config.yaml override the environment defaults.

        Returns:
            Dict with ``level`` and ``json`` keys
        """
        overrides = self.business_config.get("logging", {})
        return {
            "level": overrides.get("level", self.env.log_level),
            "json": overrides.get("json", self.env.log_json),
        }

    @property
    def storage_backend(self) -> str:
        """Name of the configured store ("memory" or "sql")."""
        return str(self.get_storage_config().get("backend", "memory")).lower()

    @property
    def database_url(self) -> str:
        """Database URL, preferring config.yaml over the environment."""
        return self.get_storage_config().get("database_url") or self.env.database_url


# Global config instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """
    Get the global configuration manager instance.

    Returns:
        ConfigManager singleton instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
