"""
Data layer: pydantic models and the stores that persist them.
"""

from .repository import DispatchRepository, InMemoryRepository, new_record_id

__all__ = ["DispatchRepository", "InMemoryRepository", "new_record_id"]
