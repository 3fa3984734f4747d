"""
Core infrastructure for the payroll engine.

This module provides:
- Config: Configuration management
- Logging: structlog setup
- Errors: Validation and persistence error types
"""

from .config import ConfigManager, EnvironmentSettings, get_config
from .errors import (
    DuplicateLoadIdError,
    InvalidParentLoadError,
    MissingParentLoadError,
    NotFoundError,
    ParentLoadInUseError,
    PayrollError,
    PersistenceError,
    ValidationError,
)
from .logging_config import configure_logging

__all__ = [
    "ConfigManager",
    "EnvironmentSettings",
    "get_config",
    "configure_logging",
    "PayrollError",
    "ValidationError",
    "DuplicateLoadIdError",
    "MissingParentLoadError",
    "InvalidParentLoadError",
    "ParentLoadInUseError",
    "PersistenceError",
    "NotFoundError",
]
