"""Main entry point for the Quarkus guides corpus builder."""

import click

from quarkus_rag import __version__
from quarkus_rag.cli.bake import bake
from quarkus_rag.cli.discover import discover
from quarkus_rag.cli.export import export


@click.group()
@click.version_option(__version__, prog_name="quarkus-rag")
def cli() -> None:
    """Build a vector-search corpus from the Quarkus guides."""


cli.add_command(bake)
cli.add_command(discover)
cli.add_command(export)


if __name__ == "__main__":
    cli()
