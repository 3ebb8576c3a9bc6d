"""Guide discovery from the quarkus.io guides index and AsciiDoc sources.

The guides index lists every guide twice over: once as a ``<qs-guide>``
element carrying keyword hints, and again through ordinary links. The
structured elements are authoritative; plain links only fill gaps.
"""

import html
import re
import subprocess
from collections.abc import Callable, Iterable
from pathlib import Path
from urllib.parse import urlparse

import httpx
import structlog

from quarkus_rag.ingestion.models import GuideDescriptor
from quarkus_rag.utils.exceptions import DiscoveryError

logger = structlog.get_logger(__name__)

SITE_ROOT = "https://quarkus.io"
# Guides are listed unversioned at /guides/, not /version/X.Y/guides/
GUIDES_INDEX_URL = f"{SITE_ROOT}/guides/"
QUARKUS_REPO_URL = "https://github.com/quarkusio/quarkus.git"
ASCIIDOC_DIR = Path("docs/src/main/asciidoc")
INDEX_TIMEOUT_SECONDS = 30.0

QS_GUIDE_PATTERN = re.compile(r"<qs-guide[^>]*?>.*?</qs-guide>", re.DOTALL)
URL_ATTR_PATTERN = re.compile(r'url="(/guides/[^"]+)"')
KEYWORDS_ATTR_PATTERN = re.compile(r'keywords="([^"]*)"')
GUIDE_LINK_PATTERN = re.compile(r'href="(/guides/[^"#?]+)"')

EXCLUDED_PATH_PARTS = ("/stylesheet/", "/assets/")
EXCLUDED_SUFFIXES = (".css", ".js", ".png", ".jpg", ".svg")
EXCLUDED_SOURCE_DIRS = {"includes", "_includes", "_templates"}


def _absolute(path: str) -> str:
    return SITE_ROOT + path.rstrip("/")


def _is_guide_link(path: str) -> bool:
    """Filter out the index itself and static assets."""
    if path.rstrip("/") == "/guides":
        return False
    if any(part in path for part in EXCLUDED_PATH_PARTS):
        return False
    return not path.endswith(EXCLUDED_SUFFIXES)


def _structured_guides(index_html: str) -> dict[str, str]:
    guides: dict[str, str] = {}
    for block in QS_GUIDE_PATTERN.finditer(index_html):
        text = block.group(0)
        url_match = URL_ATTR_PATTERN.search(text)
        if not url_match:
            continue
        keywords_match = KEYWORDS_ATTR_PATTERN.search(text)
        keywords = html.unescape(keywords_match.group(1)).strip() if keywords_match else ""
        guides[_absolute(url_match.group(1))] = keywords
    return guides


def _linked_guides(index_html: str) -> dict[str, str]:
    return {
        _absolute(href): ""
        for href in GUIDE_LINK_PATTERN.findall(index_html)
        if _is_guide_link(href)
    }


def discover(index_html: str) -> dict[str, str]:
    """Extract guide URLs and keyword hints from the guides index page.

    Args:
        index_html: Raw HTML of the guides index

    Returns:
        Mapping of absolute guide URL to keywords (empty string when none)

    Raises:
        DiscoveryError: If the page yields no guides at all
    """
    structured = _structured_guides(index_html)
    linked = _linked_guides(index_html)

    # Structured entries win; links only add URLs not seen before
    guides = {**linked, **structured}

    if not guides:
        raise DiscoveryError("No guides found in guides index page")

    logger.info(
        "guides_discovered",
        total=len(guides),
        structured=len(structured),
        link_only=len(guides) - len(structured),
        with_keywords=sum(1 for keywords in guides.values() if keywords),
    )
    return guides


def title_from_url(url: str) -> str:
    """Last non-empty path segment of a guide URL."""
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    return segments[-1] if segments else "unknown"


class GuideIndexClient:
    """Fetches the guides index page over HTTP."""

    def __init__(self, timeout: float = INDEX_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    def fetch_index(self, url: str = GUIDES_INDEX_URL) -> str:
        """Download the guides index.

        Raises:
            DiscoveryError: If the page is unreachable or not HTTP 200
        """
        logger.info("fetching_guides_index", url=url)
        try:
            response = httpx.get(url, timeout=self.timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            raise DiscoveryError(f"Failed to fetch guides index {url}: {e}") from e

        if response.status_code != 200:
            raise DiscoveryError(f"HTTP {response.status_code} for guides index {url}")
        return response.text

    def discover(self, url: str = GUIDES_INDEX_URL) -> dict[str, str]:
        """Fetch the index and extract its guides."""
        return discover(self.fetch_index(url))


def clone_docs_source(
    version: str,
    workdir: Path,
    repo_url: str = QUARKUS_REPO_URL,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> Path:
    """Shallow-clone the Quarkus repository at a release tag.

    Args:
        version: Release tag, e.g. "3.30.6"
        workdir: Directory to clone into (must not exist yet or be empty)
        repo_url: Repository to clone
        runner: subprocess.run compatible callable

    Returns:
        Path to the AsciiDoc guides directory inside the checkout

    Raises:
        DiscoveryError: If cloning fails or the checkout has no guides directory
    """
    logger.info("cloning_docs_source", repo_url=repo_url, tag=version, workdir=str(workdir))
    try:
        runner(
            ["git", "clone", "--depth", "1", "--branch", version, repo_url, str(workdir)],
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as e:
        raise DiscoveryError(
            f"git clone of {repo_url} at tag {version} failed: {(e.stderr or '').strip()}"
        ) from e
    except OSError as e:
        raise DiscoveryError(f"git clone of {repo_url} could not start: {e}") from e

    docs_dir = workdir / ASCIIDOC_DIR
    if not docs_dir.is_dir():
        raise DiscoveryError(f"Checkout has no guides directory: {docs_dir}")
    return docs_dir


def find_asciidoc_guides(docs_dir: Path) -> list[Path]:
    """List guide sources, skipping partials, includes and templates.

    Raises:
        DiscoveryError: If docs_dir is not a directory
    """
    if not docs_dir.is_dir():
        raise DiscoveryError(f"Guides directory not found: {docs_dir}")

    guides = []
    for path in docs_dir.rglob("*.adoc"):
        if not path.is_file() or path.name.startswith("_"):
            continue
        if EXCLUDED_SOURCE_DIRS.intersection(path.relative_to(docs_dir).parts[:-1]):
            continue
        guides.append(path)

    guides.sort(key=str)
    logger.info("asciidoc_guides_found", docs_dir=str(docs_dir), count=len(guides))
    return guides


def build_guide_descriptors(
    index: dict[str, str],
    asciidoc_files: Iterable[Path] | None = None,
    repo_root: Path | None = None,
    max_guides: int = 0,
    only_titles: Iterable[str] | None = None,
) -> list[GuideDescriptor]:
    """Turn discovery output into the deduplicated, ordered work list.

    With AsciiDoc sources, each source file is one guide and the index only
    contributes keywords. Without them, each index URL is one guide.

    Args:
        index: Output of discover()
        asciidoc_files: Optional guide sources from a repository checkout
        repo_root: Checkout root, used to record each source's repo_path
        max_guides: Keep only the first N guides (0 = all)
        only_titles: Optional allow-list of guide titles

    Returns:
        Guides sorted by identifier, each identifier appearing once
    """
    descriptors: dict[str, GuideDescriptor] = {}

    if asciidoc_files is not None:
        keywords_by_title = {title_from_url(url): keywords for url, keywords in index.items()}
        for path in asciidoc_files:
            repo_path = None
            if repo_root is not None and path.is_relative_to(repo_root):
                repo_path = path.relative_to(repo_root).as_posix()
            descriptors.setdefault(
                str(path),
                GuideDescriptor(
                    identifier=str(path),
                    title=path.stem,
                    keywords=keywords_by_title.get(path.stem, ""),
                    source_path=path,
                    repo_path=repo_path,
                ),
            )
    else:
        for url, keywords in index.items():
            descriptors.setdefault(
                url, GuideDescriptor(identifier=url, title=title_from_url(url), keywords=keywords)
            )

    guides = sorted(descriptors.values(), key=lambda guide: guide.identifier)

    if only_titles is not None:
        wanted = set(only_titles)
        guides = [guide for guide in guides if guide.title in wanted]

    if max_guides > 0 and len(guides) > max_guides:
        logger.info("limiting_guides", max_guides=max_guides, available=len(guides))
        guides = guides[:max_guides]

    return guides
