"""Text chunking with a fixed set of strategies.

Two strategies share one entry point, ``split``:

1. RECURSIVE: a sliding character window. Each cut prefers the last
   paragraph, line, sentence or word boundary inside the window and falls
   back to a hard cut at the size limit. Consecutive chunks share exactly
   ``overlap_size`` characters.
2. SEMANTIC: one section per Markdown heading. Sections that exceed the
   size limit are re-split with RECURSIVE; small sections are kept as they
   are, since a heading marks a meaningful retrieval unit.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from quarkus_rag.ingestion.models import Chunk, GuideDocument
from quarkus_rag.utils.exceptions import ChunkingError, ConfigurationError

if TYPE_CHECKING:
    from quarkus_rag.utils.config import IngestionSettings

logger = structlog.get_logger(__name__)

# Preferred cut points, strongest first
SEPARATORS = ("\n\n", "\n", ". ", " ")

HEADING_PATTERN = re.compile(r"^#{1,6}\s")
FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")


class ChunkingStrategy(str, Enum):
    """Available chunking strategies."""

    RECURSIVE = "recursive"
    SEMANTIC = "semantic"


@dataclass(frozen=True)
class ChunkingConfig:
    """Strategy plus its size parameters, validated on construction.

    Attributes:
        strategy: Which splitter to use
        max_chunk_size: Upper bound on chunk length, in characters
        overlap_size: Characters shared by consecutive window chunks
    """

    strategy: ChunkingStrategy = ChunkingStrategy.RECURSIVE
    max_chunk_size: int = 1000
    overlap_size: int = 300

    def __post_init__(self) -> None:
        """Reject configurations the splitters cannot honour.

        Raises:
            ConfigurationError: If sizes are out of range
        """
        if self.max_chunk_size <= 0:
            raise ConfigurationError(f"max_chunk_size must be > 0, got {self.max_chunk_size}")
        if self.overlap_size < 0:
            raise ConfigurationError(f"overlap_size must be >= 0, got {self.overlap_size}")
        if self.overlap_size >= self.max_chunk_size:
            raise ConfigurationError(
                f"overlap_size ({self.overlap_size}) must be < "
                f"max_chunk_size ({self.max_chunk_size})"
            )

    @classmethod
    def from_settings(cls, settings: "IngestionSettings") -> "ChunkingConfig":
        strategy = (
            ChunkingStrategy.SEMANTIC if settings.semantic_chunking else ChunkingStrategy.RECURSIVE
        )
        return cls(
            strategy=strategy,
            max_chunk_size=settings.chunk_size,
            overlap_size=settings.chunk_overlap,
        )


def split(text: str, config: ChunkingConfig) -> list[str]:
    """Split text into ordered chunks using the configured strategy.

    Empty or whitespace-only text yields no chunks.
    """
    if config.strategy is ChunkingStrategy.SEMANTIC:
        return split_semantic(text, config.max_chunk_size, config.overlap_size)
    return split_recursive(text, config.max_chunk_size, config.overlap_size)


def _find_cut(text: str, floor: int, limit: int) -> int:
    """Position to cut at, strictly after floor and at most limit."""
    for separator in SEPARATORS:
        index = text.rfind(separator, floor, limit)
        if index != -1:
            return index + len(separator)
    return limit


def split_recursive(text: str, max_chunk_size: int, overlap_size: int) -> list[str]:
    """Slide a window over text, cutting at natural boundaries when possible.

    Every chunk is at most ``max_chunk_size`` characters, and the last
    ``overlap_size`` characters of each chunk open the next one. Only the
    final chunk may be shorter than needed to carry that overlap forward.
    """
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    start = 0
    length = len(text)

    while start + max_chunk_size < length:
        # Cutting at or before start + overlap would stall the window
        end = _find_cut(text, start + overlap_size, start + max_chunk_size)
        chunks.append(text[start:end])
        start = end - overlap_size

    chunks.append(text[start:])
    return chunks


def _split_sections(text: str) -> list[str]:
    """Split Markdown at ATX headings outside fenced code blocks."""
    sections: list[str] = []
    current: list[str] = []
    in_fence = False

    for line in text.splitlines(keepends=True):
        if FENCE_PATTERN.match(line):
            in_fence = not in_fence
        elif not in_fence and HEADING_PATTERN.match(line) and current:
            sections.append("".join(current))
            current = []
        current.append(line)

    if current:
        sections.append("".join(current))

    return [section.strip() for section in sections if section.strip()]


def split_semantic(text: str, max_chunk_size: int, overlap_size: int) -> list[str]:
    """Split at headings, re-splitting oversized sections by size.

    A document without headings is a single section.
    """
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    for section in _split_sections(text):
        if len(section) <= max_chunk_size:
            chunks.append(section)
        else:
            chunks.extend(split_recursive(section, max_chunk_size, overlap_size))
    return chunks


def chunk_document(document: GuideDocument, config: ChunkingConfig) -> list[Chunk]:
    """Split a guide document into chunks that each carry its metadata.

    Raises:
        ChunkingError: If the document content is not text
    """
    if not isinstance(document.content, str):
        raise ChunkingError(
            f"Document content must be text, got {type(document.content).__name__}"
        )

    # Whitespace runs longer than a window leave blank pieces with nothing to embed
    texts = [text for text in split(document.content, config) if text.strip()]
    chunks = [
        Chunk(text=text, sequence_index=index, metadata=dict(document.metadata))
        for index, text in enumerate(texts)
    ]

    logger.debug(
        "document_chunked",
        title=document.metadata.get("title"),
        strategy=config.strategy.value,
        total_chunks=len(chunks),
        avg_chars=sum(len(chunk.text) for chunk in chunks) // len(chunks) if chunks else 0,
    )
    return chunks
