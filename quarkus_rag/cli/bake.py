"""CLI command for a full corpus build: discover, ingest, index, export."""

import signal
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import TYPE_CHECKING

import click
import structlog

from quarkus_rag.cli.utils import (
    console_logs_option,
    fail,
    load_guide_titles,
    log_level_option,
    setup_logging,
)
from quarkus_rag.export.publisher import DirectoryPublisher
from quarkus_rag.export.snapshot_exporter import SnapshotExporter
from quarkus_rag.ingestion.content_fetcher import ContentFetcher
from quarkus_rag.ingestion.docling_converter import DoclingConverter
from quarkus_rag.ingestion.embedding_generator import EmbeddingGenerator
from quarkus_rag.ingestion.guide_discovery import (
    ASCIIDOC_DIR,
    GuideIndexClient,
    build_guide_descriptors,
    clone_docs_source,
    find_asciidoc_guides,
)
from quarkus_rag.ingestion.models import GuideDescriptor
from quarkus_rag.ingestion.pipeline import IngestionPipeline
from quarkus_rag.rag.vector_store import PgVectorStore
from quarkus_rag.utils.config import Config, IngestionSettings, load_settings
from quarkus_rag.utils.exceptions import QuarkusRagError

if TYPE_CHECKING:
    from quarkus_rag.ingestion.pipeline import IngestionResult

logger = structlog.get_logger(__name__)

LOGS_PATH = Path("logs")


@contextmanager
def _stop_on_signals(pipeline: IngestionPipeline) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a stop request for the duration of the run."""

    def _handler(signum: int, frame: object) -> None:
        logger.warning("shutdown_signal_received", signal=signal.Signals(signum).name)
        pipeline.request_stop()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _display_configuration(
    settings: IngestionSettings, config: Config, dry_run: bool, source: str
) -> None:
    """Display pipeline configuration to user."""
    click.echo(f"Quarkus Version: {settings.quarkus_version}")
    click.echo(f"Guide Source: {source}")
    click.echo(f"Chunking: {'semantic' if settings.semantic_chunking else 'recursive'}")
    click.echo(f"Chunk Size: {settings.chunk_size}")
    click.echo(f"Chunk Overlap: {settings.chunk_overlap}")
    click.echo(f"Max Guides: {settings.max_guides or 'all'}")
    click.echo(f"Converter: {config.docling_url}")
    if not dry_run:
        click.echo(f"Embedding Model: {config.embedding_model} ({config.embedding_dimensions})")
    click.echo(f"Dry Run: {dry_run}")
    click.echo()


def _display_summary(result: "IngestionResult", dry_run: bool) -> None:
    """Display pipeline execution summary."""
    click.echo()
    click.echo("=" * 80)
    click.echo("Ingestion Complete!" if not result.stopped_early else "Ingestion Stopped!")
    click.echo("=" * 80)
    click.echo(f"  Guides Attempted: {result.attempted}")
    click.echo(f"  Guides Succeeded: {result.succeeded}")
    click.echo(f"  Guides Failed: {result.failed}")
    click.echo(f"  Chunks Created: {result.chunks_created}")

    if not dry_run:
        click.echo(f"  Embeddings Generated: {result.embeddings_generated}")
        click.echo(f"  Tokens Used: {result.tokens_used:,}")

    click.echo(f"  Duration: {int(result.duration_seconds)}s")
    for failure in result.failures:
        click.echo(f"    FAILED {failure.identifier} [{failure.stage.value}]: {failure.cause}")
    click.echo()
    click.echo(f"Summary report saved to: {LOGS_PATH / 'ingestion-summary.json'}")
    click.echo()


def _discover_guides(
    settings: IngestionSettings,
    config: Config,
    repo_dir: Path | None,
    workdir: Path | None,
    titles: list[str] | None,
) -> list[GuideDescriptor]:
    """Build the complete work list before any guide is fetched."""
    index = GuideIndexClient(timeout=config.request_timeout).discover()

    repo_root = repo_dir
    if workdir is not None:
        repo_root = workdir / "quarkus"
        docs_dir = clone_docs_source(settings.quarkus_version, repo_root)
    elif repo_dir is not None:
        docs_dir = repo_dir / ASCIIDOC_DIR
    else:
        docs_dir = None

    sources = find_asciidoc_guides(docs_dir) if docs_dir is not None else None
    return build_guide_descriptors(
        index,
        asciidoc_files=sources,
        repo_root=repo_root,
        max_guides=settings.max_guides,
        only_titles=titles,
    )


@click.command()
@click.option("--quarkus-version", required=True, help="Quarkus release to build for, e.g. 3.30.6")
@click.option("--chunk-size", type=int, default=1000, show_default=True, help="Max chunk size")
@click.option(
    "--chunk-overlap", type=int, default=300, show_default=True, help="Chunk overlap size"
)
@click.option("--semantic", is_flag=True, help="Split at Markdown headings before sizing")
@click.option("--max-guides", type=int, default=0, help="Process at most N guides (0 = all)")
@click.option(
    "--repo-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Local Quarkus checkout used for AsciiDoc header metadata",
)
@click.option(
    "--clone",
    is_flag=True,
    help="Shallow-clone the Quarkus repository at the version tag for header metadata",
)
@click.option(
    "--guides-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Only process guides whose titles appear in this file (one per line)",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("snapshot"),
    show_default=True,
    help="Directory for the SQL snapshot",
)
@click.option(
    "--publish-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Also copy the snapshot under this directory",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Fetch and chunk without embedding, storing or exporting",
)
@log_level_option
@console_logs_option
def bake(  # noqa: PLR0913, PLR0915
    quarkus_version: str,
    chunk_size: int,
    chunk_overlap: int,
    semantic: bool,
    max_guides: int,
    repo_dir: Path | None,
    clone: bool,
    guides_file: Path | None,
    output_dir: Path,
    publish_dir: Path | None,
    dry_run: bool,
    log_level: str | None,
    console_logs: bool,
) -> None:
    """Build the guide corpus for one Quarkus version and snapshot it.

    Discovers guides on quarkus.io, converts each one to Markdown, chunks
    and embeds it into PostgreSQL/pgvector (DATABASE_URL), then dumps the
    store to <output-dir>/init/01-rag.sql.

    Examples:

        \b
        # Full build with header metadata from a fresh clone
        quarkus-rag bake --quarkus-version 3.30.6 --clone

        \b
        # Quick check of fetching and chunking on a few guides
        quarkus-rag bake --quarkus-version 3.30.6 --max-guides 5 --dry-run
    """
    click.echo("=" * 80)
    click.echo("Quarkus Guides - Corpus Build")
    click.echo("=" * 80)
    click.echo()

    if clone and repo_dir:
        fail("--clone and --repo-dir are mutually exclusive")

    try:
        settings = load_settings(
            quarkus_version=quarkus_version,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            semantic_chunking=semantic,
            max_guides=max_guides,
        )
        config = Config(require_database=not dry_run)
    except QuarkusRagError as e:
        fail("Configuration error", e)

    setup_logging(log_level or config.log_level, console_logs)

    titles = None
    if guides_file:
        try:
            titles = load_guide_titles(guides_file)
            click.echo(f"  Loaded {len(titles)} guide titles from {guides_file}")
        except (OSError, ValueError) as e:
            fail(f"Failed to load guide titles: {e}")

    source = "clone" if clone else str(repo_dir) if repo_dir else "guides index only"
    _display_configuration(settings, config, dry_run, source)

    store = None
    try:
        embedder = None
        if not dry_run:
            embedder = EmbeddingGenerator(
                api_key=config.openai_api_key,
                model=config.embedding_model,
                dimensions=config.embedding_dimensions,
                base_url=config.embedding_base_url,
                timeout=config.request_timeout,
            )
            store = PgVectorStore(config.database_url, config.embedding_dimensions)
            store.create_schema()

        fetcher = ContentFetcher(DoclingConverter(config.docling_url, config.request_timeout))

        workdir_context = tempfile.TemporaryDirectory() if clone else nullcontext(None)
        with workdir_context as workdir:
            guides = _discover_guides(
                settings, config, repo_dir, Path(workdir) if workdir else None, titles
            )
            click.echo(f"Discovered {len(guides)} guides")
            click.echo()

            pipeline = IngestionPipeline(
                settings,
                fetcher,
                embedder,
                store,
                dry_run=dry_run,
                logs_path=LOGS_PATH,
            )
            with _stop_on_signals(pipeline):
                result = pipeline.run(guides)

        _display_summary(result, dry_run)

        if result.stopped_early:
            fail("Run stopped before all guides were processed; no snapshot exported")
        if dry_run:
            return

        store.create_index()
        exporter = SnapshotExporter(config.database_url)
        artifact = exporter.export(output_dir, settings.quarkus_version)
        click.echo(f"Snapshot written to: {artifact.dump_path}")
        click.echo(f"  Image: {artifact.image}")
        if publish_dir:
            click.echo(f"Published to: {DirectoryPublisher(publish_dir).publish(artifact)}")

    except QuarkusRagError as e:
        logger.error("pipeline_failed", error=str(e), error_type=type(e).__name__)
        fail("Pipeline failed", e)
    finally:
        if store is not None:
            store.close()
