"""Quarkus guide corpus ingestion: discover, fetch, chunk, embed, snapshot."""

__version__ = "0.1.0"
