"""
Application services.

- DispatcherState: the single owner of the in-memory mirrors
- build_repository / create_state: wiring from configuration
"""

from typing import Optional

from dispatch_payroll.core.config import ConfigManager, get_config
from dispatch_payroll.data.repository import DispatchRepository, InMemoryRepository

from .state import DispatcherState


def build_repository(config: Optional[ConfigManager] = None) -> DispatchRepository:
    """
    Build the store named by ``storage.backend`` in config.yaml.

    Raises:
        ValueError: If the backend name is unknown
    """
    config = config or get_config()
    backend = config.storage_backend

    if backend == "memory":
        return InMemoryRepository()
    if backend == "sql":
        from dispatch_payroll.data.sql import SqlRepository

        repository = SqlRepository(config.database_url)
        repository.create_schema()
        return repository
    raise ValueError(f"Unsupported storage backend: {backend}")


def create_state(config: Optional[ConfigManager] = None) -> DispatcherState:
    """Build a populated DispatcherState over the configured store."""
    state = DispatcherState(build_repository(config))
    state.refresh()
    return state


__all__ = ["DispatcherState", "build_repository", "create_state"]
