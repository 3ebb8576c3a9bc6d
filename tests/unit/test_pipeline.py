"""Unit tests for the ingestion pipeline."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest
from structlog.testing import capture_logs

from quarkus_rag.ingestion.content_fetcher import FetchedContent
from quarkus_rag.ingestion.models import GuideDescriptor, GuideState
from quarkus_rag.ingestion.pipeline import IngestionPipeline, IngestionResult
from quarkus_rag.utils.config import IngestionSettings
from quarkus_rag.utils.exceptions import (
    ConfigurationError,
    FetchError,
    Severity,
    VectorStoreError,
)

CONTENT = "# Guide\n\n" + "Quarkus makes Java cloud native. " * 20


def _guides(count: int) -> list[GuideDescriptor]:
    return [
        GuideDescriptor(
            identifier=f"https://quarkus.io/guides/guide-{i:02d}", title=f"guide-{i:02d}"
        )
        for i in range(count)
    ]


def _fetcher(failing: set[str] | None = None, content: str = CONTENT) -> MagicMock:
    failing = failing or set()

    def fetch(title: str, version: str) -> FetchedContent:
        if title in failing:
            raise FetchError(f"Both URLs failed for {title}")
        return FetchedContent(text=content, url=f"https://quarkus.io/version/3.30/guides/{title}")

    fetcher = MagicMock()
    fetcher.fetch.side_effect = fetch
    return fetcher


def _embedder(dims: int = 4) -> MagicMock:
    embedder = MagicMock()
    embedder.total_tokens = 0

    def embed(texts: list[str]) -> list[np.ndarray]:
        embedder.total_tokens += 5 * len(texts)
        return [np.ones(dims, dtype=np.float32) for _ in texts]

    embedder.generate_embeddings.side_effect = embed
    return embedder


def _store() -> MagicMock:
    store = MagicMock()
    store.upsert_document.side_effect = lambda key, chunks, embeddings: len(chunks)
    return store


@pytest.fixture
def small_chunks() -> IngestionSettings:
    return IngestionSettings(quarkus_version="3.30.6", chunk_size=200, chunk_overlap=20)


class TestIngestionResult:
    """Tests for run accounting."""

    def test_record_success_and_failure(self) -> None:
        result = IngestionResult()
        result.record_success(chunks=3, embeddings=3)
        result.record_failure(MagicMock())

        assert (result.attempted, result.succeeded, result.failed) == (2, 1, 1)
        assert result.chunks_created == 3
        assert len(result.failures) == 1


class TestRun:
    """Tests for IngestionPipeline.run."""

    def test_three_of_ten_fetch_failures_do_not_abort(self, small_chunks) -> None:
        """Test per-guide failure isolation and counters."""
        failing = {"guide-02", "guide-05", "guide-09"}
        store = _store()
        pipeline = IngestionPipeline(small_chunks, _fetcher(failing), _embedder(), store)

        result = pipeline.run(_guides(10))

        assert (result.attempted, result.succeeded, result.failed) == (10, 7, 3)
        assert store.upsert_document.call_count == 7
        assert {f.identifier.rsplit("/", 1)[-1] for f in result.failures} == failing
        assert all(f.stage is GuideState.METADATA_RESOLVED for f in result.failures)
        assert all(f.error_type == "FetchError" for f in result.failures)

    def test_duplicate_guides_processed_once(self, small_chunks) -> None:
        guides = _guides(2)
        pipeline = IngestionPipeline(small_chunks, _fetcher(), _embedder(), _store())

        result = pipeline.run(guides + guides)

        assert result.attempted == 2

    def test_progress_cadence(self, small_chunks) -> None:
        """Test progress is reported every Nth guide and on the last one."""
        pipeline = IngestionPipeline(
            small_chunks, _fetcher(), _embedder(), _store(), progress_every=5
        )

        with capture_logs() as logs:
            pipeline.run(_guides(12))

        progress = [log["processed"] for log in logs if log["event"] == "guides_progress"]
        assert progress == [5, 10, 12]

    def test_stop_request_ends_run_between_guides(self, small_chunks) -> None:
        """Test the in-flight guide completes and no further guide starts."""
        fetcher = _fetcher()
        pipeline = IngestionPipeline(small_chunks, fetcher, _embedder(), _store())

        def fetch_then_stop(title: str, version: str) -> FetchedContent:
            pipeline.request_stop()
            return FetchedContent(text=CONTENT, url=f"https://quarkus.io/guides/{title}")

        fetcher.fetch.side_effect = fetch_then_stop

        result = pipeline.run(_guides(5))

        assert result.stopped_early is True
        assert result.attempted == 1
        assert result.succeeded == 1

    def test_fatal_error_propagates(self, small_chunks) -> None:
        """Test that rejected credentials abort the run."""
        embedder = _embedder()
        embedder.generate_embeddings.side_effect = ConfigurationError("Invalid embedding API key")
        pipeline = IngestionPipeline(small_chunks, _fetcher(), embedder, _store())

        with pytest.raises(ConfigurationError):
            pipeline.run(_guides(3))

    def test_fatal_error_still_writes_summary_report(self, small_chunks, tmp_path: Path) -> None:
        embedder = _embedder()
        embedder.generate_embeddings.side_effect = ConfigurationError("Invalid embedding API key")
        pipeline = IngestionPipeline(
            small_chunks, _fetcher(), embedder, _store(), logs_path=tmp_path
        )

        with pytest.raises(ConfigurationError):
            pipeline.run(_guides(3))

        summary = json.loads((tmp_path / "ingestion-summary.json").read_text())
        assert summary["quarkus_version"] == "3.30.6"
        assert summary["succeeded"] == 0

    def test_tokens_and_summary_report(self, small_chunks, tmp_path: Path) -> None:
        """Test the JSON summary written to the logs directory."""
        pipeline = IngestionPipeline(
            small_chunks, _fetcher({"guide-01"}), _embedder(), _store(), logs_path=tmp_path
        )

        result = pipeline.run(_guides(3))

        summary = json.loads((tmp_path / "ingestion-summary.json").read_text())
        assert summary["quarkus_version"] == "3.30.6"
        assert summary["attempted"] == 3
        assert summary["failed"] == 1
        assert summary["tokens_used"] == result.tokens_used > 0
        assert summary["failures"][0]["identifier"] == "https://quarkus.io/guides/guide-01"
        assert summary["failures"][0]["stage"] == "metadata_resolved"


class TestProcess:
    """Tests for IngestionPipeline.process."""

    def test_success_path(self, small_chunks) -> None:
        store = _store()
        pipeline = IngestionPipeline(small_chunks, _fetcher(), _embedder(), store)
        guide = GuideDescriptor(identifier="https://quarkus.io/guides/kafka", title="kafka")

        outcome = pipeline.process(guide)

        assert outcome.ok
        assert outcome.state is GuideState.INGESTED
        assert outcome.url == "https://quarkus.io/version/3.30/guides/kafka"
        key, chunks, embeddings = store.upsert_document.call_args.args
        assert key == "3.30.6/kafka"
        assert outcome.chunks == len(chunks) == len(embeddings) > 1

    def test_metadata_merge(self, small_chunks, guide_source) -> None:
        """Test derived fields, index keywords and header attributes are merged."""
        source = guide_source(":categories: messaging\n:topics: kafka\n", name="kafka.adoc")
        guide = GuideDescriptor(
            identifier=str(source),
            title="kafka",
            keywords="streams",
            source_path=source,
            repo_path="docs/src/main/asciidoc/kafka.adoc",
        )
        store = _store()
        pipeline = IngestionPipeline(small_chunks, _fetcher(), _embedder(), store)

        pipeline.process(guide)

        chunk = store.upsert_document.call_args.args[1][0]
        assert chunk.metadata == {
            "url": "https://quarkus.io/version/3.30/guides/kafka",
            "version": "3.30.6",
            "title": "kafka",
            "keywords": "streams",
            "repo_path": "docs/src/main/asciidoc/kafka.adoc",
            "categories": "messaging",
            "topics": "kafka",
        }

    def test_absent_header_keys_are_omitted(self, small_chunks) -> None:
        pipeline = IngestionPipeline(small_chunks, _fetcher(), None, None, dry_run=True)
        guide = GuideDescriptor(identifier="g", title="cdi")

        merged = pipeline.assemble_document(
            guide, "text", "https://quarkus.io/guides/cdi", MagicMock(as_dict=lambda: {})
        ).metadata

        assert merged == {
            "url": "https://quarkus.io/guides/cdi",
            "version": "3.30.6",
            "title": "cdi",
        }

    def test_header_attributes_take_precedence(self, small_chunks) -> None:
        """Test header values override derived values on a key collision."""
        pipeline = IngestionPipeline(small_chunks, _fetcher(), None, None, dry_run=True)
        guide = GuideDescriptor(identifier="g", title="cdi", keywords="index hint")
        header = MagicMock(as_dict=lambda: {"keywords": "header value"})

        merged = pipeline.assemble_document(guide, "text", "u", header).metadata

        assert merged["keywords"] == "header value"

    def test_partial_embeddings_are_not_stored(self, small_chunks) -> None:
        """Test a guide with any missing embedding fails at the ingest step."""
        embedder = _embedder()
        embedder.generate_embeddings.side_effect = lambda texts: [None] + [
            np.ones(4) for _ in texts[1:]
        ]
        store = _store()
        pipeline = IngestionPipeline(small_chunks, _fetcher(), embedder, store)

        outcome = pipeline.process(GuideDescriptor(identifier="g", title="kafka"))

        assert not outcome.ok
        assert outcome.state is GuideState.FAILED
        assert outcome.failure.stage is GuideState.CHUNKED
        assert outcome.failure.error_type == "EmbeddingGenerationError"
        store.upsert_document.assert_not_called()

    def test_whitespace_padding_does_not_fail_guide(self, small_chunks) -> None:
        """Test wide padded content is ingested without blank chunks."""
        content = "Intro text. " + " " * 600 + "| table | cell |\n" + "More prose. " * 30
        embedder = _embedder()
        # Blank inputs get no embedding, as with EmbeddingGenerator
        embedder.generate_embeddings.side_effect = lambda texts: [
            np.ones(4, dtype=np.float32) if text.strip() else None for text in texts
        ]
        store = _store()
        pipeline = IngestionPipeline(small_chunks, _fetcher(content=content), embedder, store)

        outcome = pipeline.process(GuideDescriptor(identifier="g", title="kafka"))

        assert outcome.ok
        assert outcome.state is GuideState.INGESTED
        _, chunks, _ = store.upsert_document.call_args.args
        assert all(chunk.text.strip() for chunk in chunks)

    def test_store_failure_is_recoverable(self, small_chunks) -> None:
        store = _store()
        store.upsert_document.side_effect = VectorStoreError("connection reset")
        pipeline = IngestionPipeline(small_chunks, _fetcher(), _embedder(), store)

        outcome = pipeline.process(GuideDescriptor(identifier="g", title="kafka"))

        assert outcome.failure.stage is GuideState.CHUNKED
        assert outcome.failure.severity is Severity.RECOVERABLE
        assert pipeline.result.failed == 1

    def test_empty_content_fails_chunking(self, small_chunks) -> None:
        pipeline = IngestionPipeline(small_chunks, _fetcher(content="  \n"), _embedder(), _store())

        outcome = pipeline.process(GuideDescriptor(identifier="g", title="kafka"))

        assert outcome.failure.stage is GuideState.CONTENT_FETCHED
        assert outcome.failure.error_type == "ChunkingError"

    def test_unexpected_error_is_contained(self, small_chunks) -> None:
        """Test non-library exceptions are recorded as recoverable failures."""
        extractor = MagicMock()
        extractor.extract.side_effect = RuntimeError("disk on fire")
        pipeline = IngestionPipeline(
            small_chunks, _fetcher(), _embedder(), _store(), metadata_extractor=extractor
        )

        outcome = pipeline.process(GuideDescriptor(identifier="g", title="kafka"))

        assert outcome.failure.stage is GuideState.DISCOVERED
        assert outcome.failure.error_type == "RuntimeError"
        assert outcome.failure.cause == "disk on fire"

    def test_dry_run_stops_after_chunking(self, small_chunks) -> None:
        pipeline = IngestionPipeline(small_chunks, _fetcher(), None, None, dry_run=True)

        outcome = pipeline.process(GuideDescriptor(identifier="g", title="kafka"))

        assert outcome.ok
        assert outcome.state is GuideState.CHUNKED
        assert pipeline.result.embeddings_generated == 0

    def test_embedder_and_store_required_outside_dry_run(self, small_chunks) -> None:
        with pytest.raises(ValueError):
            IngestionPipeline(small_chunks, _fetcher(), None, None)
