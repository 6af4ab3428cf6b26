from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from navsync.errors import StaleVersionError, UpstreamError
from navsync.models import Store
from navsync.services.bookmark_import import parse_bookmark_html
from navsync.services.classifier import DEFAULT_RULES, Classifier, load_rules_file
from navsync.services.common import icon_filename
from navsync.services.icons import IconFetcher, resolve_icons
from navsync.services.reconcile import DEFAULT_ICON_PREFIX, reconcile
from navsync.services.serializer import deserialize, serialize
from navsync.services.storage import (
    BookmarkSource,
    GitHubContentsStore,
    HttpBookmarkSource,
    LocalDirectoryStore,
    StoreBackend,
    StoreBookmarkSource,
)

logger = logging.getLogger(__name__)

_RUN_LOCK = threading.Lock()


@dataclass
class SyncSettings:
    store_path: str = "src/data/mock_data.js"
    icon_dir: str = "public/sitelogo"
    icon_url_prefix: str = DEFAULT_ICON_PREFIX
    title: str = "My Navigation"
    max_attempts: int = 3
    backoff_seconds: float = 1.0


@dataclass
class SyncResult:
    version: str | None = None
    attempts: int = 0
    committed: bool = False
    total_bookmarks: int = 0
    duplicates_dropped: int = 0
    added: list[str] = field(default_factory=list)
    reused: list[str] = field(default_factory=list)
    created_categories: list[str] = field(default_factory=list)
    icons_written: list[str] = field(default_factory=list)
    icons_unresolved: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "version": self.version,
            "attempts": self.attempts,
            "committed": self.committed,
            "total_bookmarks": self.total_bookmarks,
            "duplicates_dropped": self.duplicates_dropped,
            "added": self.added,
            "reused": self.reused,
            "created_categories": self.created_categories,
            "icons_written": self.icons_written,
            "icons_unresolved": self.icons_unresolved,
        }


class SyncPipeline:
    """One reconciliation run from bookmark export to committed store.

    The store write is conditional on the version token read in the same
    attempt. A stale token means another writer got there first: the store is
    re-read and the merge redone, up to ``max_attempts`` times.
    """

    def __init__(
        self,
        source: BookmarkSource,
        store: StoreBackend,
        classifier: Classifier,
        fetcher: IconFetcher,
        settings: SyncSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.store = store
        self.classifier = classifier
        self.fetcher = fetcher
        self.settings = settings or SyncSettings()
        self.sleep = sleep

    def run(self) -> SyncResult:
        with _RUN_LOCK:
            return self._run()

    def _run(self) -> SyncResult:
        settings = self.settings
        bookmarks = list(parse_bookmark_html(self.source.fetch()))
        icon_cache: dict[str, bytes | None] = {}

        for attempt in range(1, settings.max_attempts + 1):
            document = self.store.read(settings.store_path)
            if document is None:
                existing = Store(title=settings.title)
                version = None
            else:
                existing = deserialize(document.text)
                version = document.version

            merged = reconcile(
                existing,
                bookmarks,
                self.classifier,
                icon_prefix=settings.icon_url_prefix,
            )
            known = self.store.list_names(settings.icon_dir)
            pending = [
                site
                for site in merged.added_sites
                if icon_filename(site.url) not in icon_cache
            ]
            resolution = resolve_icons(pending, known, self.fetcher)
            icon_cache.update(resolution.resolved)
            icon_cache.update(dict.fromkeys(resolution.unresolved))

            result = SyncResult(
                version=version,
                attempts=attempt,
                total_bookmarks=len(bookmarks),
                duplicates_dropped=merged.duplicates_dropped,
                added=[site.id for site in merged.added_sites],
                reused=[site.id for site in merged.reused_sites],
                created_categories=merged.created_categories,
            )

            text = serialize(merged.store)
            if document is not None and text == document.text:
                logger.info("Store %s already up to date", settings.store_path)
                return result

            try:
                result.version = self.store.write(settings.store_path, text, version)
            except StaleVersionError as exc:
                if attempt >= settings.max_attempts:
                    raise UpstreamError(
                        f"gave up writing {settings.store_path} after "
                        f"{attempt} attempts: {exc}",
                        status_code=exc.status_code,
                    ) from exc
                delay = settings.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "Store changed during sync (attempt %s/%s), retrying in %.1fs",
                    attempt,
                    settings.max_attempts,
                    delay,
                )
                self.sleep(delay)
                continue

            result.committed = True
            self._write_icons(merged.added_sites, known, icon_cache, result)
            logger.info(
                "Synced %s bookmarks into %s: %s added, %s kept, %s icons written",
                len(bookmarks),
                settings.store_path,
                len(result.added),
                len(result.reused),
                len(result.icons_written),
            )
            return result

        raise UpstreamError(f"no attempts made to write {settings.store_path}")

    def _write_icons(self, sites, known, icon_cache, result: SyncResult) -> None:
        for filename in dict.fromkeys(icon_filename(site.url) for site in sites):
            if not filename or filename in known:
                continue
            data = icon_cache.get(filename)
            if data is None:
                result.icons_unresolved.append(filename)
                continue
            path = f"{self.settings.icon_dir.rstrip('/')}/{filename}"
            try:
                self.store.write_bytes(path, data)
            except UpstreamError as exc:
                logger.warning("Could not store icon %s: %s", filename, exc)
                result.icons_unresolved.append(filename)
                continue
            result.icons_written.append(filename)


def build_store(config: Mapping) -> StoreBackend:
    backend = (config.get("STORE_BACKEND") or "local").lower()
    if backend == "github":
        if not config.get("GITHUB_REPO"):
            raise ValueError("GITHUB_REPO is required for the github store backend")
        return GitHubContentsStore(
            repo=config["GITHUB_REPO"],
            token=config.get("GITHUB_TOKEN"),
            branch=config.get("GITHUB_BRANCH") or "main",
            api_url=config.get("GITHUB_API_URL") or "https://api.github.com",
            timeout=float(config.get("UPSTREAM_TIMEOUT", 20)),
        )
    if backend == "local":
        return LocalDirectoryStore(config["STORE_LOCAL_DIR"])
    raise ValueError(f"unknown store backend: {backend}")


def build_source(config: Mapping, store: StoreBackend) -> BookmarkSource:
    if config.get("BOOKMARKS_SOURCE_URL"):
        return HttpBookmarkSource(
            config["BOOKMARKS_SOURCE_URL"],
            token=config.get("BOOKMARKS_SOURCE_TOKEN"),
            timeout=float(config.get("UPSTREAM_TIMEOUT", 20)),
        )
    return StoreBookmarkSource(store, config["BOOKMARKS_SOURCE_PATH"])


def build_pipeline(config: Mapping) -> SyncPipeline:
    store = build_store(config)
    rules_path = config.get("RULES_PATH")
    rules = load_rules_file(rules_path) if rules_path else DEFAULT_RULES
    settings = SyncSettings(
        store_path=config["STORE_PATH"],
        icon_dir=config["ICON_DIR"],
        icon_url_prefix=config["ICON_URL_PREFIX"],
        title=config["STORE_TITLE"],
        max_attempts=max(1, int(config["SYNC_MAX_ATTEMPTS"])),
        backoff_seconds=float(config["SYNC_RETRY_BACKOFF_SECONDS"]),
    )
    return SyncPipeline(
        source=build_source(config, store),
        store=store,
        classifier=Classifier(rules),
        fetcher=IconFetcher(timeout=float(config["ICON_FETCH_TIMEOUT"])),
        settings=settings,
    )
