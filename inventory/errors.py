# inventory/errors.py
from typing import List, Optional


class InventoryError(Exception):
    """Base class for every error raised by the persistence layer."""


class ValidationError(InventoryError):
    """Input rejected before any state was touched."""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        super().__init__(message)
        self.problems = problems or []


class NotFoundError(InventoryError):
    """A write needed an existing record that is absent."""


class BackendError(InventoryError):
    """The storage layer itself failed."""


class SchemaError(BackendError):
    """Schema migration could not be applied; the prior schema is left in place."""


class PartialFailure(InventoryError):
    """A non-critical sub-operation failed and was skipped."""
