"""Database schema for the vector store."""

from quarkus_rag.models.rag_document import DEFAULT_TABLE_NAME, build_rag_documents_table

__all__ = ["DEFAULT_TABLE_NAME", "build_rag_documents_table"]
