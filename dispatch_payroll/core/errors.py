"""
Error taxonomy for the payroll engine.

- ValidationError: rejected before any store call is attempted
- PersistenceError: raised by a store during create/update/delete
"""

from typing import Optional


class PayrollError(Exception):
    """Base class for all payroll engine errors."""


class ValidationError(PayrollError):
    """Input rejected before any mutation was attempted."""


class DuplicateLoadIdError(ValidationError):
    """A load with the same identifier already exists."""

    def __init__(self, load_id: str) -> None:
        super().__init__(f"Load ID already exists: {load_id}")
        self.load_id = load_id


class MissingParentLoadError(ValidationError):
    """A PARTIAL load was submitted without a parent reference."""

    def __init__(self, load_id: str) -> None:
        super().__init__(f"PARTIAL load {load_id} must reference a parent FULL load")
        self.load_id = load_id


class InvalidParentLoadError(ValidationError):
    """The parent reference is unknown, not a FULL load, or set on a FULL load."""

    def __init__(self, load_id: str, parent_load_id: Optional[str], reason: str) -> None:
        super().__init__(f"Invalid parent {parent_load_id!r} for load {load_id}: {reason}")
        self.load_id = load_id
        self.parent_load_id = parent_load_id
        self.reason = reason


class ParentLoadInUseError(ValidationError):
    """A FULL load cannot be deleted or demoted while PARTIAL loads reference it."""

    def __init__(self, load_id: str, child_ids: list[str]) -> None:
        super().__init__(f"Load {load_id} is the parent of {', '.join(child_ids)}")
        self.load_id = load_id
        self.child_ids = child_ids


class PersistenceError(PayrollError):
    """The backing store failed to apply an operation."""

    def __init__(self, operation: str, entity: str, message: str) -> None:
        super().__init__(f"{operation} {entity} failed: {message}")
        self.operation = operation
        self.entity = entity


class NotFoundError(PersistenceError):
    """Update or delete targeted a record the store does not have."""

    def __init__(self, operation: str, entity: str, record_id: str) -> None:
        super().__init__(operation, entity, f"no {entity} with id {record_id!r}")
        self.record_id = record_id
