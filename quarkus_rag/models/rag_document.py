"""Table holding embedded guide chunks."""

from pgvector.sqlalchemy import Vector
from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.dialects.postgresql import JSONB

DEFAULT_TABLE_NAME = "rag_documents"


def build_rag_documents_table(
    metadata: MetaData,
    dimensions: int,
    name: str = DEFAULT_TABLE_NAME,
) -> Table:
    """Define the chunk table for a given embedding dimension.

    The vector width depends on the embedding model, so the table is built
    at runtime rather than declared once at import.

    Columns:
        id: Deterministic chunk ID (document key hash + chunk index)
        document_key: Owning guide document, used to replace a guide's chunks
        chunk_index: 0-based position within the document
        text: Chunk text
        metadata: Merged guide metadata (url, version, title, topics, ...)
        embedding: Chunk embedding
    """
    return Table(
        name,
        metadata,
        Column("id", String(64), primary_key=True),
        Column("document_key", String(500), nullable=False, index=True),
        Column("chunk_index", Integer, nullable=False),
        Column("text", Text, nullable=False),
        Column("metadata", JSONB, nullable=False),
        Column("embedding", Vector(dimensions), nullable=False),
    )
