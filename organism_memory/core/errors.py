"""
Error taxonomy for the knowledge-persistence core.

Vector store errors are raised to callers, except PersistenceCorruptError which
the store recovers from locally by starting with an empty index.
"""

from typing import Optional


class MemoryCoreError(Exception):
    """Base exception for the organism memory core."""
    pass


class VectorStoreError(MemoryCoreError):
    """Base exception for vector store operations."""
    pass


class DuplicateIdError(VectorStoreError):
    """Raised when an ID already has a label. Callers treat this as a skip."""

    def __init__(self, record_id: str, label: Optional[int] = None):
        self.record_id = record_id
        self.label = label
        super().__init__(f"ID {record_id!r} is already mapped to label {label}")


class DimensionMismatchError(VectorStoreError, ValueError):
    """Raised when a vector does not match the store-wide dimension."""

    def __init__(self, expected: int, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension {actual} does not match expected dimension {expected}")


class CapacityExceededError(VectorStoreError):
    """Raised when the index is full or a resize would drop stored points."""

    def __init__(self, capacity: int, message: Optional[str] = None):
        self.capacity = capacity
        super().__init__(message or f"Index capacity of {capacity} elements exceeded")


class IndexStateError(VectorStoreError):
    """Raised when the ANN engine is used before initialization or initialized twice."""
    pass


class PersistenceError(MemoryCoreError):
    """Base exception for index/map persistence."""
    pass


class PersistenceCorruptError(PersistenceError):
    """Raised when persisted artifacts cannot be read or disagree with each other."""
    pass


class PersistenceWriteError(PersistenceError):
    """Raised when saving fails. Previously saved artifacts are left in place."""
    pass


class CompressionError(MemoryCoreError):
    """Raised for invalid compression input. Running out of removable items is not an error."""
    pass
