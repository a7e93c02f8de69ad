from __future__ import annotations


class Vector11Error(Exception):
    """Base class for errors raised by the ingestion and retrieval code."""


class ConfigurationError(Vector11Error):
    """Missing or inconsistent configuration. Aborts the run before any work."""


class CollectionSchemaError(ConfigurationError):
    """Existing collection does not match the configured vector options."""


class StoreError(Vector11Error):
    """A store operation failed for a reason other than duplicate ids."""


class DuplicateKeyError(StoreError):
    """
    Some documents of a batch already existed.

    `inserted_count` is how many documents of the batch were written anyway.
    """

    def __init__(self, inserted_count: int, duplicate_count: int | None = None):
        self.inserted_count = inserted_count
        self.duplicate_count = duplicate_count
        super().__init__(
            f"{duplicate_count if duplicate_count is not None else 'some'} document(s) "
            f"already exist; {inserted_count} inserted"
        )


class SourceSkipped(Vector11Error):
    """Raised inside source processing when content is not worth storing."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
