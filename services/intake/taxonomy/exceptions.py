"""Errors raised by the taxonomy providers."""
from __future__ import annotations


class TaxonomyError(Exception):
    """Base class for taxonomy failures surfaced to callers."""


class TaxonomyEntryNotFound(TaxonomyError):
    def __init__(self, kind: str, entry_id: str) -> None:
        super().__init__(f"{kind} not found: {entry_id}")
        self.kind = kind
        self.entry_id = entry_id


class ProtectedEntityError(TaxonomyError):
    """A delete or rename targeted a system entry or a protected field id."""


class EntityInUseError(ProtectedEntityError):
    """The entry is still referenced and cannot be deleted."""

    def __init__(self, message: str, references: int) -> None:
        super().__init__(message)
        self.references = references
