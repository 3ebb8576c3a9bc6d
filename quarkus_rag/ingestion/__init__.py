"""Guide ingestion: discovery, metadata, fetching, chunking and the pipeline."""
