"""Unit tests for ContentFetcher."""

from unittest.mock import MagicMock

import pytest

from quarkus_rag.ingestion.content_fetcher import (
    ContentFetcher,
    latest_guide_url,
    version_for_url,
    versioned_guide_url,
)
from quarkus_rag.utils.exceptions import ConversionError, FetchError


@pytest.mark.parametrize(
    ("version", "expected"),
    [("3.30.6", "3.30"), ("3.30", "3.30"), ("3.2.0", "3.2"), ("999-SNAPSHOT", "999-SNAPSHOT")],
)
def test_version_for_url(version: str, expected: str) -> None:
    """Test patch versions are truncated to major.minor."""
    assert version_for_url(version) == expected


def test_guide_urls() -> None:
    """Test the versioned and unversioned URL templates."""
    assert versioned_guide_url("kafka", "3.30.6") == "https://quarkus.io/version/3.30/guides/kafka"
    assert latest_guide_url("kafka") == "https://quarkus.io/guides/kafka"


class TestContentFetcher:
    """Tests for the versioned-first fetch with fallback."""

    def test_versioned_url_success(self) -> None:
        """Test the versioned page is used when it converts."""
        converter = MagicMock()
        converter.convert.return_value = "# Kafka"

        fetched = ContentFetcher(converter).fetch("kafka", "3.30.6")

        assert fetched.text == "# Kafka"
        assert fetched.url == "https://quarkus.io/version/3.30/guides/kafka"
        converter.convert.assert_called_once_with("https://quarkus.io/version/3.30/guides/kafka")

    def test_fallback_url_used_after_failure(self) -> None:
        """Test the fallback URL is reported when it produced the content."""
        converter = MagicMock()
        converter.convert.side_effect = [ConversionError("HTTP 404"), "# Kafka latest"]

        fetched = ContentFetcher(converter).fetch("kafka", "3.30.6")

        assert fetched.text == "# Kafka latest"
        assert fetched.url == "https://quarkus.io/guides/kafka"
        assert [c.args[0] for c in converter.convert.call_args_list] == [
            "https://quarkus.io/version/3.30/guides/kafka",
            "https://quarkus.io/guides/kafka",
        ]

    def test_any_error_triggers_fallback(self) -> None:
        """Test non-conversion errors also fall back."""
        converter = MagicMock()
        converter.convert.side_effect = [TimeoutError("slow"), "ok"]

        assert ContentFetcher(converter).fetch("cdi", "3.30").url == "https://quarkus.io/guides/cdi"

    def test_both_urls_fail(self) -> None:
        """Test a combined, recoverable failure when the fallback also fails."""
        converter = MagicMock()
        converter.convert.side_effect = [ConversionError("HTTP 404"), ConversionError("HTTP 500")]

        with pytest.raises(FetchError) as exc_info:
            ContentFetcher(converter).fetch("kafka", "3.30.6")

        message = str(exc_info.value)
        assert "HTTP 404" in message
        assert "HTTP 500" in message
        assert exc_info.value.is_fatal is False
        assert converter.convert.call_count == 2
