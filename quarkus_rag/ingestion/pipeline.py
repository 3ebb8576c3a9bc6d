"""Ingestion pipeline orchestration for Quarkus guides.

Each guide moves through::

    DISCOVERED -> METADATA_RESOLVED -> CONTENT_FETCHED -> CHUNKED -> INGESTED

and drops to FAILED from any of them. Recoverable errors stop at the guide
boundary and are recorded; fatal errors end the run.
"""

import json
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import numpy as np
import structlog
from tqdm import tqdm

from quarkus_rag.ingestion.content_fetcher import ContentFetcher
from quarkus_rag.ingestion.metadata_extractor import MetadataExtractor
from quarkus_rag.ingestion.models import (
    Chunk,
    GuideDescriptor,
    GuideDocument,
    GuideFailure,
    GuideMetadata,
    GuideOutcome,
    GuideState,
)
from quarkus_rag.ingestion.text_chunker import ChunkingConfig, chunk_document
from quarkus_rag.utils.chunk_id import generate_document_key
from quarkus_rag.utils.config import IngestionSettings
from quarkus_rag.utils.exceptions import (
    ChunkingError,
    EmbeddingGenerationError,
    IngestError,
    QuarkusRagError,
    Severity,
)

DEFAULT_PROGRESS_EVERY = 10


class Embedder(Protocol):
    total_tokens: int

    def generate_embeddings(self, chunks: list[str]) -> list[np.ndarray | None]: ...


class DocumentStore(Protocol):
    def upsert_document(
        self, document_key: str, chunks: list[Chunk], embeddings: list[np.ndarray]
    ) -> int: ...


@dataclass
class IngestionResult:
    """Per-run accounting.

    Attributes:
        attempted: Guides the pipeline started processing
        succeeded: Guides fully processed
        failed: Guides that ended in FAILED
        chunks_created: Chunks produced across succeeded guides
        embeddings_generated: Embeddings written across succeeded guides
        tokens_used: Tokens reported by the embeddings API
        failures: (guide, stage, cause) records for every failed guide
        stopped_early: Whether a stop request ended the run before the work list did
        start_time: Start time as unix timestamp
        end_time: End time as unix timestamp
    """

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    chunks_created: int = 0
    embeddings_generated: int = 0
    tokens_used: int = 0
    failures: list[GuideFailure] = field(default_factory=list)
    stopped_early: bool = False
    start_time: float = 0.0
    end_time: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def duration_seconds(self) -> float:
        return max(self.end_time - self.start_time, 0.0)

    def record_success(self, chunks: int, embeddings: int) -> None:
        with self._lock:
            self.attempted += 1
            self.succeeded += 1
            self.chunks_created += chunks
            self.embeddings_generated += embeddings

    def record_failure(self, failure: GuideFailure) -> None:
        with self._lock:
            self.attempted += 1
            self.failed += 1
            self.failures.append(failure)

    def to_dict(self) -> dict[str, Any]:
        """Convert result to dictionary for JSON serialization."""
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "chunks_created": self.chunks_created,
            "embeddings_generated": self.embeddings_generated,
            "tokens_used": self.tokens_used,
            "stopped_early": self.stopped_early,
            "duration_seconds": int(self.duration_seconds),
            "start_time": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.start_time)),
            "end_time": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.end_time)),
            "failures": [failure.to_dict() for failure in self.failures],
        }


class IngestionPipeline:
    """Orchestrates guide ingestion into the vector store.

    For every guide:
    1. Extract header metadata from its AsciiDoc source (best effort)
    2. Fetch normalized content, versioned URL first
    3. Merge metadata and chunk the content
    4. Embed all chunks and replace the guide's rows in the store

    Guides run sequentially. A failure in one guide is recorded and the run
    moves on to the next.
    """

    def __init__(
        self,
        settings: IngestionSettings,
        fetcher: ContentFetcher,
        embedder: Embedder | None,
        store: DocumentStore | None,
        metadata_extractor: MetadataExtractor | None = None,
        progress_every: int = DEFAULT_PROGRESS_EVERY,
        dry_run: bool = False,
        logs_path: Path | None = None,
    ) -> None:
        """Initialize ingestion pipeline components.

        Args:
            settings: Validated run settings
            fetcher: Content fetcher
            embedder: Embedding generator (unused in dry runs)
            store: Document store (unused in dry runs)
            metadata_extractor: Header metadata extractor
            progress_every: Emit a progress event every N guides (and on the last)
            dry_run: Chunk without embedding or storing
            logs_path: Directory for the JSON summary report; None disables it

        Raises:
            ValueError: If embedder or store is missing outside a dry run
        """
        if not dry_run and (embedder is None or store is None):
            raise ValueError("embedder and store are required unless dry_run is set")

        self.settings = settings
        self.fetcher = fetcher
        self.embedder = embedder
        self.store = store
        self.metadata_extractor = metadata_extractor or MetadataExtractor()
        self.chunking = ChunkingConfig.from_settings(settings)
        self.progress_every = max(progress_every, 1)
        self.dry_run = dry_run
        self.logs_path = logs_path
        self.logger = structlog.get_logger(__name__)

        self.result = IngestionResult()
        self._stop_requested = threading.Event()

    def request_stop(self) -> None:
        """Ask the run to stop before the next guide; the current guide completes."""
        self._stop_requested.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def run(self, guides: Iterable[GuideDescriptor]) -> IngestionResult:
        """Process a complete work list.

        Args:
            guides: Discovered guides; repeated identifiers are processed once

        Returns:
            IngestionResult for the run

        Raises:
            QuarkusRagError: Only for fatal errors
        """
        work_list = list({guide.identifier: guide for guide in guides}.values())
        total = len(work_list)

        self.result = IngestionResult(start_time=time.time())
        tokens_before = self._embedder_tokens()
        self.logger.info(
            "pipeline_run_started",
            quarkus_version=self.settings.quarkus_version,
            guides=total,
            strategy=self.chunking.strategy.value,
            chunk_size=self.chunking.max_chunk_size,
            chunk_overlap=self.chunking.overlap_size,
            dry_run=self.dry_run,
        )

        try:
            with tqdm(total=total, desc="Ingesting guides", unit="guide") as pbar:
                for position, guide in enumerate(work_list, start=1):
                    if self.stop_requested:
                        self.result.stopped_early = True
                        self.logger.warning(
                            "pipeline_stop_requested", processed=position - 1, total=total
                        )
                        break

                    self.process(guide)
                    pbar.update(1)

                    if position % self.progress_every == 0 or position == total:
                        self.logger.info(
                            "guides_progress",
                            processed=position,
                            total=total,
                            succeeded=self.result.succeeded,
                            failed=self.result.failed,
                        )
        finally:
            self.result.end_time = time.time()
            self.result.tokens_used = self._embedder_tokens() - tokens_before
            self._save_summary_report()

        self.logger.info(
            "pipeline_run_completed",
            attempted=self.result.attempted,
            succeeded=self.result.succeeded,
            failed=self.result.failed,
            chunks_created=self.result.chunks_created,
            embeddings_generated=self.result.embeddings_generated,
            tokens_used=self.result.tokens_used,
            stopped_early=self.result.stopped_early,
            duration_seconds=int(self.result.duration_seconds),
        )
        return self.result

    def _embedder_tokens(self) -> int:
        return int(getattr(self.embedder, "total_tokens", 0) or 0)

    def process(self, guide: GuideDescriptor) -> GuideOutcome:
        """Run one guide through the pipeline.

        Recoverable failures are logged, recorded in the run result and
        returned as a FAILED outcome; they never propagate.

        Raises:
            QuarkusRagError: Only for fatal errors (e.g. rejected credentials)
        """
        state = GuideState.DISCOVERED
        url: str | None = None

        with structlog.contextvars.bound_contextvars(guide=guide.identifier):
            try:
                metadata = self.metadata_extractor.extract(guide.source_path)
                state = GuideState.METADATA_RESOLVED

                fetched = self.fetcher.fetch(guide.title, self.settings.quarkus_version)
                url = fetched.url
                state = GuideState.CONTENT_FETCHED

                document = self.assemble_document(guide, fetched.text, fetched.url, metadata)
                chunks = self._chunk(document)
                state = GuideState.CHUNKED

                if self.dry_run:
                    self.result.record_success(chunks=len(chunks), embeddings=0)
                    return GuideOutcome(guide.identifier, state, chunks=len(chunks), url=url)

                written = self._ingest(document, chunks)
                state = GuideState.INGESTED
                self.result.record_success(chunks=len(chunks), embeddings=written)
                return GuideOutcome(guide.identifier, state, chunks=len(chunks), url=url)

            except QuarkusRagError as e:
                if e.is_fatal:
                    self.logger.error("guide_failed_fatally", stage=state.value, error=str(e))
                    raise
                return self._fail(guide, state, e, url)
            except Exception as e:
                return self._fail(guide, state, e, url)

    def assemble_document(
        self,
        guide: GuideDescriptor,
        content: str,
        url: str,
        metadata: GuideMetadata,
    ) -> GuideDocument:
        """Merge fetch-derived fields with header metadata.

        Header attributes take precedence over derived fields on collision.
        """
        merged: dict[str, Any] = {
            "url": url,
            "version": self.settings.quarkus_version,
            "title": guide.title,
        }
        if guide.keywords:
            merged["keywords"] = guide.keywords
        if guide.repo_path:
            merged["repo_path"] = guide.repo_path

        merged.update(metadata.as_dict())
        return GuideDocument(content=content, metadata=merged)

    def _chunk(self, document: GuideDocument) -> list[Chunk]:
        chunks = chunk_document(document, self.chunking)
        if not chunks:
            raise ChunkingError(f"No content to chunk for {document.title}")
        return chunks

    def _ingest(self, document: GuideDocument, chunks: list[Chunk]) -> int:
        """Embed chunks and write the document in one store call."""
        assert self.embedder is not None and self.store is not None

        try:
            embeddings = self.embedder.generate_embeddings([chunk.text for chunk in chunks])
        except IngestError:
            raise
        except QuarkusRagError as e:
            if e.is_fatal:
                raise
            raise EmbeddingGenerationError(f"Embedding failed: {e}") from e
        except Exception as e:
            raise EmbeddingGenerationError(f"Embedding failed: {e}") from e

        missing = [index for index, embedding in enumerate(embeddings) if embedding is None]
        if missing or len(embeddings) != len(chunks):
            # A partially embedded guide is never written
            raise EmbeddingGenerationError(
                f"{len(missing) or len(chunks)} of {len(chunks)} chunks could not be embedded"
            )

        document_key = generate_document_key(document.title, self.settings.quarkus_version)
        try:
            return self.store.upsert_document(
                document_key, chunks, [e for e in embeddings if e is not None]
            )
        except IngestError:
            raise
        except Exception as e:
            raise IngestError(f"Store write failed for {document_key}: {e}") from e

    def _fail(
        self,
        guide: GuideDescriptor,
        stage: GuideState,
        error: Exception,
        url: str | None,
    ) -> GuideOutcome:
        severity = error.severity if isinstance(error, QuarkusRagError) else Severity.RECOVERABLE
        failure = GuideFailure(
            identifier=guide.identifier,
            stage=stage,
            cause=str(error),
            error_type=type(error).__name__,
            severity=severity,
        )
        self.result.record_failure(failure)
        self.logger.error(
            "guide_failed",
            stage=stage.value,
            error=str(error),
            error_type=type(error).__name__,
        )
        return GuideOutcome(guide.identifier, GuideState.FAILED, url=url, failure=failure)

    def _save_summary_report(self) -> None:
        """Save run summary report to JSON file."""
        if self.logs_path is None:
            return

        summary_path = self.logs_path / "ingestion-summary.json"
        summary = {
            "quarkus_version": self.settings.quarkus_version,
            "dry_run": self.dry_run,
            **self.result.to_dict(),
        }

        try:
            self.logs_path.mkdir(parents=True, exist_ok=True)
            with summary_path.open("w") as f:
                json.dump(summary, f, indent=2)
            self.logger.info("summary_report_saved", path=str(summary_path))
        except OSError as e:
            self.logger.error("summary_report_save_failed", error=str(e))
