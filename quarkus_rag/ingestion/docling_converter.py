"""Docling Serve client for converting web pages to Markdown."""

from typing import Any

import httpx
import structlog

from quarkus_rag.utils.exceptions import ConversionError

logger = structlog.get_logger(__name__)

CONVERT_PATH = "/v1/convert/source"
SUCCESS_STATUSES = {"success", "partial_success"}


class DoclingConverter:
    """Converts a URL to Markdown through a Docling Serve instance."""

    def __init__(self, base_url: str, timeout: float = 30.0) -> None:
        """Initialize converter.

        Args:
            base_url: Docling Serve root, e.g. "http://localhost:5001"
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def convert(self, url: str) -> str:
        """Fetch ``url`` and return its content as Markdown.

        Raises:
            ConversionError: On transport failure, non-2xx status, a failed
                conversion or an empty document
        """
        payload: dict[str, Any] = {
            "options": {"to_formats": ["md"]},
            "sources": [{"kind": "http", "url": url}],
        }

        logger.debug("docling_convert_started", url=url)
        try:
            response = httpx.post(
                f"{self.base_url}{CONVERT_PATH}",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ConversionError(f"Docling request failed for {url}: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ConversionError(f"Docling returned invalid JSON for {url}: {e}") from e

        status = body.get("status")
        if status not in SUCCESS_STATUSES:
            errors = body.get("errors") or []
            raise ConversionError(f"Docling conversion of {url} returned {status!r}: {errors}")

        document = body.get("document") or {}
        markdown = document.get("md_content")
        if not isinstance(markdown, str) or not markdown.strip():
            raise ConversionError(f"Docling returned no Markdown content for {url}")

        logger.debug("docling_convert_completed", url=url, chars=len(markdown))
        return markdown

