"""CLI command for snapshotting an already populated store."""

from pathlib import Path

import click

from quarkus_rag.cli.utils import console_logs_option, fail, log_level_option, setup_logging
from quarkus_rag.export.publisher import DirectoryPublisher
from quarkus_rag.export.snapshot_exporter import SnapshotExporter
from quarkus_rag.utils.config import Config
from quarkus_rag.utils.exceptions import QuarkusRagError


@click.command()
@click.option("--quarkus-version", required=True, help="Version the corpus was built for")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("snapshot"),
    show_default=True,
    help="Directory for init/01-rag.sql and manifest.json",
)
@click.option(
    "--publish-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Also copy the snapshot under this directory",
)
@click.option("--pg-dump", "pg_dump_path", default="pg_dump", help="pg_dump executable")
@log_level_option
@console_logs_option
def export(  # noqa: PLR0913
    quarkus_version: str,
    output_dir: Path,
    publish_dir: Path | None,
    pg_dump_path: str,
    log_level: str | None,
    console_logs: bool,
) -> None:
    """Dump the vector store (DATABASE_URL) into a restorable SQL snapshot."""
    try:
        config = Config()
    except QuarkusRagError as e:
        fail("Configuration error", e)
    setup_logging(log_level or config.log_level, console_logs)

    try:
        artifact = SnapshotExporter(config.database_url, pg_dump_path=pg_dump_path).export(
            output_dir, quarkus_version
        )
        click.echo(f"Snapshot written to: {artifact.dump_path}")
        click.echo(f"  SHA-256: {artifact.sha256}")
        click.echo(f"  Image: {artifact.image}")
        if publish_dir:
            click.echo(f"Published to: {DirectoryPublisher(publish_dir).publish(artifact)}")
    except QuarkusRagError as e:
        fail("Snapshot export failed", e)
