"""Error taxonomy for the ingestion pipeline.

Every kind aborts the open unit of work and reaches the caller unchanged.
"""
from __future__ import annotations


class IngestError(Exception):
    """Base class for all ingestion failures."""
    pass


class EmptyExtractionResult(IngestError):
    """The extraction service produced no text."""
    pass


class MalformedPayload(IngestError):
    """Response text is not parseable into the expected record shape."""
    pass


class MissingRequiredField(IngestError):
    """One of the identifying job-offer fields is absent or empty."""

    def __init__(self, field_name: str):
        super().__init__(f"Invalid record format: {field_name} is missing")
        self.field_name = field_name


class UpsertFailure(IngestError):
    """The job-offer upsert returned no row."""
    pass


class PersistenceError(IngestError):
    """An underlying storage operation failed."""
    pass
