"""Custom exception hierarchy for the application.

Every error carries a severity. Recoverable errors are scoped to a single
guide and are absorbed by the ingestion pipeline; fatal errors abort the run.
"""

from enum import Enum


class Severity(str, Enum):
    """How far an error is allowed to propagate."""

    RECOVERABLE = "recoverable"
    FATAL = "fatal"


class QuarkusRagError(Exception):
    """Base exception for all application errors."""

    default_severity = Severity.FATAL

    def __init__(self, message: str, severity: Severity | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message
            severity: Override for the class default severity
        """
        super().__init__(message)
        self.message = message
        self.severity = severity or self.default_severity

    @property
    def is_fatal(self) -> bool:
        """Whether this error must abort the whole run."""
        return self.severity is Severity.FATAL


class ConfigurationError(QuarkusRagError):
    """Configuration or environment setup error."""

    pass


class DiscoveryError(QuarkusRagError):
    """Guide index unreachable or unparsable; there is no work list."""

    pass


class FetchError(QuarkusRagError):
    """Both the versioned and the fallback guide URL failed."""

    default_severity = Severity.RECOVERABLE


class ConversionError(QuarkusRagError):
    """The document-conversion service could not convert a URL."""

    default_severity = Severity.RECOVERABLE


class ChunkingError(QuarkusRagError):
    """Guide content could not be split into chunks."""

    default_severity = Severity.RECOVERABLE


class IngestError(QuarkusRagError):
    """Embedding or store write failed for a guide."""

    default_severity = Severity.RECOVERABLE


class EmbeddingGenerationError(IngestError):
    """Embedding generation error."""

    pass


class VectorStoreError(IngestError):
    """Vector store write error."""

    pass


class ExportError(QuarkusRagError):
    """Snapshot dump did not complete."""

    pass
