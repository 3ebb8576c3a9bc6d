"""Data models for guide ingestion."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from quarkus_rag.utils.exceptions import Severity

# Header attributes recognised in AsciiDoc sources, in metadata order
HEADER_KEYS = ("topics", "categories", "extensions", "summary")


@dataclass(frozen=True)
class GuideDescriptor:
    """Identifies one documentation guide.

    Attributes:
        identifier: Stable key for the run (absolute guide URL or AsciiDoc source path)
        title: Guide slug, from the URL's last path segment or the file stem
        keywords: Keyword hint scraped from the guides index (may be empty)
        source_path: AsciiDoc source used for header metadata, when known
        repo_path: source_path relative to the repository checkout
    """

    identifier: str
    title: str
    keywords: str = ""
    source_path: Path | None = None
    repo_path: str | None = None

    def __post_init__(self) -> None:
        """Validate descriptor data after initialization.

        Raises:
            ValueError: If identifier or title is empty
        """
        if not self.identifier or not self.identifier.strip():
            raise ValueError("Guide identifier cannot be empty")
        if not self.title or not self.title.strip():
            raise ValueError("Guide title cannot be empty")


@dataclass(frozen=True)
class GuideMetadata:
    """Author-declared attributes read from a guide's AsciiDoc header."""

    topics: str | None = None
    categories: str | None = None
    extensions: str | None = None
    summary: str | None = None

    @classmethod
    def from_header(cls, header: dict[str, str]) -> "GuideMetadata":
        """Build from an extractor mapping; empty values count as absent."""
        return cls(**{key: header.get(key) or None for key in HEADER_KEYS})

    def as_dict(self) -> dict[str, str]:
        """Present attributes only; absent keys are omitted, never blanked."""
        values = {key: getattr(self, key) for key in HEADER_KEYS}
        return {key: value for key, value in values.items() if value}


@dataclass
class GuideDocument:
    """Normalized guide content with its merged metadata.

    Metadata always holds url, version and title; keywords, repo_path and
    the four header attributes appear only when present.
    """

    content: str
    metadata: dict[str, Any]

    @property
    def title(self) -> str:
        return str(self.metadata["title"])

    def to_record(self) -> dict[str, Any]:
        """Record shape emitted downstream."""
        return {"content": self.content, "metadata": dict(self.metadata)}


@dataclass
class Chunk:
    """Represents a retrievable slice of a guide document.

    Attributes:
        text: Substring of the document content
        sequence_index: 0-based position within the document
        metadata: Copy of the owning document's metadata
    """

    text: str
    sequence_index: int
    metadata: dict[str, Any] = field(default_factory=dict)


class GuideState(str, Enum):
    """Per-guide processing states. FAILED is absorbing."""

    DISCOVERED = "discovered"
    METADATA_RESOLVED = "metadata_resolved"
    CONTENT_FETCHED = "content_fetched"
    CHUNKED = "chunked"
    INGESTED = "ingested"
    FAILED = "failed"


@dataclass(frozen=True)
class GuideFailure:
    """A recorded per-guide failure.

    Attributes:
        identifier: Guide identifier
        stage: Last state the guide reached before failing
        cause: Human-readable failure cause
        error_type: Exception class name
        severity: Severity of the underlying error
    """

    identifier: str
    stage: GuideState
    cause: str
    error_type: str
    severity: Severity = Severity.RECOVERABLE

    def to_dict(self) -> dict[str, str]:
        return {
            "identifier": self.identifier,
            "stage": self.stage.value,
            "cause": self.cause,
            "error_type": self.error_type,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class GuideOutcome:
    """Result of processing one guide."""

    identifier: str
    state: GuideState
    chunks: int = 0
    url: str | None = None
    failure: GuideFailure | None = None

    @property
    def ok(self) -> bool:
        # Dry runs stop at CHUNKED without failing
        return self.failure is None and self.state is not GuideState.FAILED
