"""Publishing targets for snapshot artifacts."""

import shutil
from pathlib import Path
from typing import Protocol

import structlog

from quarkus_rag.export.snapshot_exporter import SnapshotArtifact
from quarkus_rag.utils.exceptions import ExportError

logger = structlog.get_logger(__name__)


class SnapshotPublisher(Protocol):
    """Makes a snapshot available to consumers and returns where it went."""

    def publish(self, artifact: SnapshotArtifact) -> str: ...


class DirectoryPublisher:
    """Copies a snapshot into a local directory.

    The destination gets the init scripts under ``<target>/<version>/init``
    and the manifest beside them, ready to mount as a PostgreSQL
    docker-entrypoint-initdb.d.
    """

    def __init__(self, target_dir: Path) -> None:
        self.target_dir = target_dir

    def publish(self, artifact: SnapshotArtifact) -> str:
        """Copy the artifact.

        Returns:
            Destination directory as a string

        Raises:
            ExportError: If the copy fails
        """
        destination = self.target_dir / artifact.version
        try:
            destination.mkdir(parents=True, exist_ok=True)
            shutil.copytree(
                artifact.init_dir, destination / artifact.init_dir.name, dirs_exist_ok=True
            )
            shutil.copy2(artifact.manifest_path, destination / artifact.manifest_path.name)
        except OSError as e:
            raise ExportError(f"Failed to publish snapshot to {destination}: {e}") from e

        logger.info("snapshot_published", destination=str(destination), image=artifact.image)
        return str(destination)
