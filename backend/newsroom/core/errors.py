"""
Error taxonomy for the ingestion pipeline.

Adapters convert these into values (see ``FetchResult``) instead of raising
them at the orchestrator; the store raises ``PersistenceError`` and the
coordinator treats ``PurgeError`` as fatal.
"""


class IngestionError(Exception):
    """Base class for all ingestion failures."""

    def __init__(self, message: str, *, source: str | None = None):
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class ConfigError(IngestionError):
    """A required credential or setting is missing."""


class NetworkError(IngestionError):
    """Transport failure, timeout, non-2xx response or provider error status."""


class ParseError(IngestionError):
    """The payload could not be decoded (or only partially)."""


class PersistenceError(IngestionError):
    """A single store operation failed."""


class PurgeError(IngestionError):
    """The purge step of a maintenance run failed."""
