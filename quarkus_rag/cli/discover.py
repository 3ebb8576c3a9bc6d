"""CLI command for listing the guides a run would process."""

from pathlib import Path

import click
import structlog

from quarkus_rag.cli.utils import (
    console_logs_option,
    fail,
    load_guide_titles,
    log_level_option,
    setup_logging,
)
from quarkus_rag.ingestion.guide_discovery import (
    ASCIIDOC_DIR,
    GUIDES_INDEX_URL,
    GuideIndexClient,
    build_guide_descriptors,
    find_asciidoc_guides,
)
from quarkus_rag.utils.config import Config
from quarkus_rag.utils.exceptions import QuarkusRagError

logger = structlog.get_logger(__name__)


@click.command()
@click.option(
    "--index-url",
    default=GUIDES_INDEX_URL,
    show_default=True,
    help="Guides index page to scan",
)
@click.option(
    "--repo-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Local Quarkus checkout; lists its AsciiDoc guide sources instead of index URLs",
)
@click.option(
    "--guides-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Only list guides whose titles appear in this file (one per line)",
)
@click.option("--max-guides", type=int, default=0, help="List at most N guides (0 = all)")
@log_level_option
@console_logs_option
def discover(  # noqa: PLR0913
    index_url: str,
    repo_dir: Path | None,
    guides_file: Path | None,
    max_guides: int,
    log_level: str | None,
    console_logs: bool,
) -> None:
    """List discovered guides, one per line as "<title>\\t<identifier>\\t<keywords>".

    Examples:

        \b
        # Guides on the live index
        quarkus-rag discover

        \b
        # Guides from a local checkout, keyword hints from the index
        quarkus-rag discover --repo-dir ../quarkus
    """
    try:
        config = Config(require_database=False)
    except QuarkusRagError as e:
        fail("Configuration error", e)
    setup_logging(log_level or config.log_level, console_logs)

    try:
        titles = load_guide_titles(guides_file) if guides_file else None
    except (OSError, ValueError) as e:
        fail(f"Failed to load guide titles: {e}")

    try:
        index = GuideIndexClient(timeout=config.request_timeout).discover(index_url)
        sources = find_asciidoc_guides(repo_dir / ASCIIDOC_DIR) if repo_dir else None
    except QuarkusRagError as e:
        logger.error("discovery_failed", error=str(e))
        fail("Guide discovery failed", e)

    guides = build_guide_descriptors(
        index,
        asciidoc_files=sources,
        repo_root=repo_dir,
        max_guides=max_guides,
        only_titles=titles,
    )
    for guide in guides:
        click.echo(f"{guide.title}\t{guide.identifier}\t{guide.keywords}")
