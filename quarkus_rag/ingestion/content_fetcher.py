"""Guide content fetching with versioned-URL-first fallback."""

import re
from dataclasses import dataclass
from typing import Protocol

import structlog

from quarkus_rag.ingestion.guide_discovery import SITE_ROOT
from quarkus_rag.utils.exceptions import FetchError

logger = structlog.get_logger(__name__)

VERSIONED_GUIDE_URL = SITE_ROOT + "/version/{version}/guides/{title}"
LATEST_GUIDE_URL = SITE_ROOT + "/guides/{title}"

PATCH_VERSION_PATTERN = re.compile(r"^(\d+\.\d+)\.\d+$")


class Converter(Protocol):
    """Anything that turns a page URL into normalized Markdown."""

    def convert(self, url: str) -> str: ...


@dataclass(frozen=True)
class FetchedContent:
    """Normalized guide text and the URL that actually produced it."""

    text: str
    url: str


def version_for_url(version: str) -> str:
    """Reduce a release version to the major.minor form used in doc URLs.

    "3.30.6" -> "3.30"; "3.30" and anything else is returned unchanged.
    """
    match = PATCH_VERSION_PATTERN.match(version)
    return match.group(1) if match else version


def versioned_guide_url(title: str, version: str) -> str:
    return VERSIONED_GUIDE_URL.format(version=version_for_url(version), title=title)


def latest_guide_url(title: str) -> str:
    return LATEST_GUIDE_URL.format(title=title)


class ContentFetcher:
    """Resolves a guide title to Markdown content.

    Version-specific pages do not exist for every guide, so a failed
    versioned attempt falls back exactly once to the unversioned page.
    """

    def __init__(self, converter: Converter) -> None:
        self.converter = converter

    def fetch(self, title: str, version: str) -> FetchedContent:
        """Fetch and convert one guide.

        Args:
            title: Guide slug, e.g. "kafka"
            version: Product version, e.g. "3.30.6"

        Returns:
            FetchedContent whose url is the page that was converted

        Raises:
            FetchError: If both the versioned and the fallback URL fail
        """
        versioned_url = versioned_guide_url(title, version)
        try:
            text = self.converter.convert(versioned_url)
            logger.info("guide_fetched", url=versioned_url, chars=len(text))
            return FetchedContent(text=text, url=versioned_url)
        except Exception as versioned_error:
            fallback_url = latest_guide_url(title)
            logger.warning(
                "versioned_url_failed_trying_latest",
                url=versioned_url,
                fallback_url=fallback_url,
                error=str(versioned_error),
            )

            try:
                text = self.converter.convert(fallback_url)
            except Exception as fallback_error:
                raise FetchError(
                    f"Both URLs failed for {title}: "
                    f"{versioned_url} ({versioned_error}); {fallback_url} ({fallback_error})"
                ) from fallback_error

            logger.info("guide_fetched", url=fallback_url, chars=len(text), fallback=True)
            return FetchedContent(text=text, url=fallback_url)
