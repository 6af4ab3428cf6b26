from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from urllib.parse import quote, urljoin

import httpx
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from navsync.errors import IconFetchError
from navsync.models import Site
from navsync.services.common import hostname_for, icon_filename, origin_for

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; navsync favicon fetcher)",
    "Accept": "image/avif,image/webp,image/png,image/*;q=0.8,*/*;q=0.5",
}

MIN_ICON_BYTES = 100
MAX_ICON_BYTES = 1_000_000
MAX_PAGE_BYTES = 500_000

ALTERNATE_ICON_PATHS = (
    "/apple-touch-icon.png",
    "/apple-touch-icon-precomposed.png",
    "/icon.png",
)
FAVICON_PROXY = "https://www.google.com/s2/favicons?domain={host}&sz=64"

_IMAGE_SIGNATURES = (
    b"\x89PNG",
    b"\xff\xd8",
    b"\x00\x00\x01\x00",
    b"\x00\x00\x02\x00",
    b"GIF87a",
    b"GIF89a",
)


@dataclass
class IconResolution:
    resolved: dict[str, bytes] = field(default_factory=dict)
    unresolved: list[str] = field(default_factory=list)
    sources: dict[str, str] = field(default_factory=dict)


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


def looks_like_image(data: bytes, content_type: str | None = None) -> bool:
    ct = (content_type or "").split(";", 1)[0].strip().lower()
    if ct == "text/html":
        return False
    if not data:
        return False
    if any(data.startswith(signature) for signature in _IMAGE_SIGNATURES):
        return True
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return True
    return len(data) > MIN_ICON_BYTES


def discover_icon_links(html: str, base_url: str) -> list[str]:
    """Return icon URLs advertised by <link rel="...icon..."> tags."""
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        soup = BeautifulSoup(html, "lxml")

    links: list[str] = []
    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if not any("icon" in value.lower() for value in rel):
            continue
        href = (link.get("href") or "").strip()
        if not href or href.startswith("data:"):
            continue
        absolute = urljoin(base_url + "/", href)
        if absolute not in links:
            links.append(absolute)
    return links


class IconFetcher:
    def __init__(
        self, timeout: float = 10.0, transport: httpx.BaseTransport | None = None
    ):
        self.timeout = timeout
        self.transport = transport
        self._session: httpx.Client | None = None

    def _client(self) -> httpx.Client:
        return httpx.Client(
            follow_redirects=True,
            timeout=self.timeout,
            headers=DEFAULT_HEADERS,
            transport=self.transport,
        )

    def __enter__(self) -> "IconFetcher":
        self._session = self._client()
        return self

    def __exit__(self, *exc_info) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.close()

    def _stream(
        self, client: httpx.Client, url: str, max_bytes: int
    ) -> tuple[bytes, str | None]:
        with client.stream("GET", url) as response:
            if not response.is_success:
                raise IconFetchError(url, f"HTTP {response.status_code}")
            chunks = []
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > max_bytes:
                    raise IconFetchError(url, "response too large")
                chunks.append(chunk)
            return b"".join(chunks), response.headers.get("content-type")

    def _read(self, url: str, max_bytes: int) -> tuple[bytes, str | None]:
        try:
            if self._session is not None:
                return self._stream(self._session, url, max_bytes)
            with self._client() as client:
                return self._stream(client, url, max_bytes)
        except httpx.HTTPError as exc:
            raise IconFetchError(url, _normalize_error(exc)) from exc

    def fetch_icon(self, url: str) -> bytes:
        data, content_type = self._read(url, MAX_ICON_BYTES)
        if not looks_like_image(data, content_type):
            raise IconFetchError(url, "payload does not look like an image")
        return data

    def fetch_page(self, url: str) -> str:
        data, _ = self._read(url, MAX_PAGE_BYTES)
        return data.decode("utf-8", errors="ignore")


def iter_icon_candidates(site_url: str, fetcher: IconFetcher) -> Iterator[str]:
    origin = origin_for(site_url)
    host = hostname_for(site_url)
    seen: set[str] = set()

    def fresh(url: str) -> bool:
        if url in seen:
            return False
        seen.add(url)
        return True

    favicon = f"{origin}/favicon.ico"
    fresh(favicon)
    yield favicon

    try:
        page = fetcher.fetch_page(origin + "/")
    except IconFetchError as exc:
        logger.debug("Could not read %s for icon links: %s", origin, exc.reason)
    else:
        for url in discover_icon_links(page, origin):
            if fresh(url):
                yield url

    for path in ALTERNATE_ICON_PATHS:
        url = origin + path
        if fresh(url):
            yield url

    yield FAVICON_PROXY.format(host=quote(host))


def resolve_icon(site_url: str, fetcher: IconFetcher) -> tuple[str, bytes] | None:
    for candidate in iter_icon_candidates(site_url, fetcher):
        try:
            return candidate, fetcher.fetch_icon(candidate)
        except IconFetchError as exc:
            logger.debug("Icon candidate %s rejected: %s", candidate, exc.reason)
    return None


def resolve_icons(
    sites: Iterable[Site], known_filenames: set[str], fetcher: IconFetcher
) -> IconResolution:
    """Fetch icon assets for new sites whose icon file is not stored yet.

    Candidates are tried one after another; a site whose candidates all fail
    is reported in ``unresolved`` and its icon path is left dangling.
    """
    resolution = IconResolution()
    attempted: set[str] = set()

    with fetcher:
        for site in sites:
            filename = icon_filename(site.url)
            if not filename or filename in known_filenames or filename in attempted:
                continue
            attempted.add(filename)

            found = resolve_icon(site.url, fetcher)
            if found is None:
                logger.warning("No usable icon found for %s", site.url)
                resolution.unresolved.append(filename)
                continue

            source, data = found
            resolution.resolved[filename] = data
            resolution.sources[filename] = source
            logger.info("Fetched icon %s from %s", filename, source)

    return resolution
