"""
Exceptions for rule storage and snapshot loading.
"""

from typing import List, Optional

from classify.core.exceptions import PipelineError


class RuleStoreError(PipelineError):
    """
    Error in the persisted rule store.

    Raised when:
    - The database is unreachable
    - A write would break a storage-level invariant (single fallback, unique names)
    - A referenced row does not exist
    """
    pass


class SnapshotValidationError(PipelineError):
    """
    Loaded rule tables break an invariant.

    Attributes:
        errors: Every invariant violation found
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class SnapshotUnavailableError(PipelineError):
    """No rule snapshot has been installed."""
    pass
