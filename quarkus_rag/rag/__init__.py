"""Vector store access."""

from quarkus_rag.rag.vector_store import PgVectorStore
from quarkus_rag.utils.chunk_id import generate_chunk_id, generate_document_key

__all__ = [
    "PgVectorStore",
    "generate_chunk_id",
    "generate_document_key",
]
