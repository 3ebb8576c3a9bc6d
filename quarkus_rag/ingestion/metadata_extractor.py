"""Metadata extraction from AsciiDoc guide headers.

Guides declare their taxonomy as document attributes near the top of the
file::

    :categories: web
    :topics: graphql
    :extensions: io.quarkus:quarkus-smallrye-graphql
    :summary: This guide explains...
"""

import re
from pathlib import Path

import structlog

from quarkus_rag.ingestion.models import HEADER_KEYS, GuideMetadata

logger = structlog.get_logger(__name__)

MAX_SCAN_LINES = 120

ATTR_PATTERN = re.compile(
    r"^\s*:(categories|summary|extensions|topics):\s*(.*)\s*$",
    re.IGNORECASE,
)


def extract_header(source: str | Path, max_lines: int = MAX_SCAN_LINES) -> dict[str, str]:
    """Read recognised header attributes from the start of a guide source.

    Only the first ``max_lines`` lines are scanned, and scanning stops as soon
    as all four attributes have been seen, so a re-declaration further down
    is never observed. Metadata is enrichment only: a missing, unreadable or
    undecodable file yields an empty mapping.

    Args:
        source: Path to the .adoc file
        max_lines: Number of leading lines to scan

    Returns:
        Mapping of lowercased attribute name to trimmed value
    """
    path = Path(source)
    metadata: dict[str, str] = {}

    if not path.is_file():
        logger.debug("metadata_source_not_a_file", path=str(path))
        return metadata

    try:
        with path.open("r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if line_number > max_lines:
                    break

                match = ATTR_PATTERN.match(line.rstrip("\r\n"))
                if not match:
                    continue

                metadata[match.group(1).lower()] = match.group(2).strip()

                if len(metadata) == len(HEADER_KEYS):
                    break
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("metadata_read_failed", path=str(path), error=str(e))
        return {}

    return metadata


class MetadataExtractor:
    """Extracts GuideMetadata from AsciiDoc sources."""

    def __init__(self, max_lines: int = MAX_SCAN_LINES) -> None:
        self.max_lines = max_lines

    def extract(self, source: str | Path | None) -> GuideMetadata:
        """Extract metadata for a guide; guides without a source get none."""
        if source is None:
            return GuideMetadata()

        header = extract_header(source, self.max_lines)
        if header:
            logger.debug("header_metadata_extracted", path=str(source), keys=sorted(header))
        return GuideMetadata.from_header(header)
