"""Pytest configuration and shared fixtures."""

import os
from pathlib import Path

import pytest
import structlog

from quarkus_rag.utils.config import IngestionSettings


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless a test database is configured."""
    if os.getenv("TEST_DATABASE_URL"):
        return
    skip = pytest.mark.skip(reason="TEST_DATABASE_URL not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by a test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def test_data_dir() -> Path:
    """Return path to test data directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def settings() -> IngestionSettings:
    """Default run settings for version 3.30.6."""
    return IngestionSettings(quarkus_version="3.30.6")


@pytest.fixture
def guide_source(tmp_path: Path):
    """Factory writing an AsciiDoc guide source and returning its path."""

    def _write(content: str, name: str = "guide.adoc") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
