"""Export of the populated vector store as a plain SQL dump."""

import hashlib
import json
import os
import subprocess
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from quarkus_rag.utils.exceptions import ExportError

logger = structlog.get_logger(__name__)

IMAGE_REPOSITORY = "ghcr.io/quarkusio/chappie-ingestion-quarkus"
INIT_DIR_NAME = "init"
DUMP_FILE_NAME = "01-rag.sql"
MANIFEST_FILE_NAME = "manifest.json"


def image_reference(version: str) -> str:
    """Name the snapshot image for a product version."""
    return f"{IMAGE_REPOSITORY}:{version}"


def _sha256(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for block in iter(lambda: f.read(1024 * 1024), b""):
            h.update(block)
    return h.hexdigest()


@dataclass(frozen=True)
class SnapshotArtifact:
    """A finished snapshot on local disk.

    Attributes:
        version: Product version the corpus was built for
        dump_path: The plain SQL dump (init/01-rag.sql)
        manifest_path: JSON manifest written next to the init directory
        sha256: Hex digest of the dump
        size_bytes: Dump size
        image: Image reference the snapshot is meant to be published as
        created_at: ISO-8601 UTC creation time
    """

    version: str
    dump_path: Path
    manifest_path: Path
    sha256: str
    size_bytes: int
    image: str
    created_at: str

    @property
    def init_dir(self) -> Path:
        return self.dump_path.parent

    def to_manifest(self) -> dict[str, str | int]:
        data = asdict(self)
        data["dump_path"] = f"{INIT_DIR_NAME}/{self.dump_path.name}"
        del data["manifest_path"]
        return data


class SnapshotExporter:
    """Dumps the store with pg_dump into a database init script.

    The dump is plain SQL without ownership or privilege statements, so a
    fresh PostgreSQL container can replay it from docker-entrypoint-initdb.d.
    """

    def __init__(
        self,
        database_url: str,
        pg_dump_path: str = "pg_dump",
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        """Initialize SnapshotExporter.

        Args:
            database_url: SQLAlchemy or libpq URL of the populated store
            pg_dump_path: pg_dump executable
            runner: subprocess.run compatible callable

        Raises:
            ExportError: If database_url cannot be parsed
        """
        self.pg_dump_path = pg_dump_path
        self.runner = runner
        self.dbname, self.password = self._libpq_target(database_url)

    @staticmethod
    def _libpq_target(database_url: str) -> tuple[str, str | None]:
        """Split a URL into a password-free libpq URL and the password."""
        try:
            url = make_url(database_url)
        except ArgumentError as e:
            raise ExportError(f"Invalid database URL: {e}") from e

        password = url.password
        libpq_url = URL.create(
            "postgresql",
            username=url.username,
            host=url.host,
            port=url.port,
            database=url.database,
            query=url.query,
        )
        return libpq_url.render_as_string(hide_password=False), password

    def build_command(self, dump_path: Path) -> list[str]:
        return [
            self.pg_dump_path,
            "--no-owner",
            "--no-privileges",
            "--format=plain",
            "--file",
            str(dump_path),
            "--dbname",
            self.dbname,
        ]

    def export(self, output_dir: Path, version: str) -> SnapshotArtifact:
        """Write init/01-rag.sql and manifest.json under output_dir.

        Args:
            output_dir: Snapshot directory, created if missing
            version: Product version the corpus was built for

        Returns:
            SnapshotArtifact describing the written files

        Raises:
            ExportError: If pg_dump fails or produces no usable dump
        """
        init_dir = output_dir / INIT_DIR_NAME
        dump_path = init_dir / DUMP_FILE_NAME
        try:
            init_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportError(f"Cannot create snapshot directory {init_dir}: {e}") from e

        env = dict(os.environ)
        if self.password:
            env["PGPASSWORD"] = self.password

        logger.info("snapshot_export_started", dump_path=str(dump_path), version=version)
        try:
            completed = self.runner(
                self.build_command(dump_path),
                env=env,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            self._discard(dump_path)
            raise ExportError(f"Could not run {self.pg_dump_path}: {e}") from e

        if completed.returncode != 0:
            self._discard(dump_path)
            raise ExportError(
                f"pg_dump exited with {completed.returncode}: {(completed.stderr or '').strip()}"
            )

        self._verify_dump(dump_path)

        artifact = SnapshotArtifact(
            version=version,
            dump_path=dump_path,
            manifest_path=output_dir / MANIFEST_FILE_NAME,
            sha256=_sha256(dump_path),
            size_bytes=dump_path.stat().st_size,
            image=image_reference(version),
            created_at=datetime.now(UTC).isoformat(),
        )
        with artifact.manifest_path.open("w") as f:
            json.dump(artifact.to_manifest(), f, indent=2)

        logger.info(
            "snapshot_exported",
            dump_path=str(dump_path),
            size_bytes=artifact.size_bytes,
            sha256=artifact.sha256,
            image=artifact.image,
        )
        return artifact

    def _verify_dump(self, dump_path: Path) -> None:
        """Reject missing, empty or table-less dumps.

        Raises:
            ExportError: If the dump is unusable
        """
        if not dump_path.is_file():
            raise ExportError(f"pg_dump produced no output at {dump_path}")

        if dump_path.stat().st_size == 0:
            self._discard(dump_path)
            raise ExportError(f"pg_dump produced an empty dump at {dump_path}")

        with dump_path.open(encoding="utf-8", errors="replace") as f:
            has_table = any("CREATE TABLE" in line for line in f)
        if not has_table:
            self._discard(dump_path)
            raise ExportError(f"Dump at {dump_path} contains no CREATE TABLE statement")

    @staticmethod
    def _discard(dump_path: Path) -> None:
        if dump_path.exists():
            dump_path.unlink()
            logger.warning("partial_dump_removed", dump_path=str(dump_path))
