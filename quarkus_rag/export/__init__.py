"""Snapshot export and publishing of an ingested corpus."""

from quarkus_rag.export.publisher import DirectoryPublisher, SnapshotPublisher
from quarkus_rag.export.snapshot_exporter import SnapshotArtifact, SnapshotExporter, image_reference

__all__ = [
    "DirectoryPublisher",
    "SnapshotArtifact",
    "SnapshotExporter",
    "SnapshotPublisher",
    "image_reference",
]
