"""Utilities for chunk ID generation."""

import hashlib


def generate_document_key(title: str, version: str) -> str:
    """Stable key for one guide document within a corpus version.

    Example: ("kafka", "3.30.6") -> "3.30.6/kafka"
    """
    return f"{version}/{title}"


def generate_chunk_id(document_key: str, chunk_index: int) -> str:
    """Generate deterministic chunk ID from document key and chunk index.

    The key is hashed so IDs have a fixed width regardless of title length.
    Re-ingesting the same guide yields the same IDs, so writes overwrite
    rather than append.

    Args:
        document_key: Key from generate_document_key
        chunk_index: Zero-based index of chunk within the document

    Returns:
        Deterministic ID string, e.g. "3f9a0c1d2e4b5a69_0"
    """
    digest = hashlib.sha256(document_key.encode("utf-8")).hexdigest()[:16]
    return f"{digest}_{chunk_index}"
