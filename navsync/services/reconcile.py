from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from navsync.models import (
    PROVENANCE_SYNC,
    BookmarkEntry,
    Category,
    ClassificationRule,
    Site,
    Store,
)
from navsync.services.classifier import Classifier
from navsync.services.common import hostname_for, icon_filename, site_id_for

DEFAULT_ICON_PREFIX = "/sitelogo"


@dataclass
class ReconcileResult:
    store: Store
    added_sites: list[Site] = field(default_factory=list)
    reused_sites: list[Site] = field(default_factory=list)
    created_categories: list[str] = field(default_factory=list)
    duplicates_dropped: int = 0


def dedupe_bookmarks(
    bookmarks: Iterable[BookmarkEntry],
) -> tuple[list[BookmarkEntry], int]:
    seen: set[str] = set()
    unique: list[BookmarkEntry] = []
    dropped = 0
    for bookmark in bookmarks:
        if bookmark.url in seen:
            dropped += 1
            continue
        seen.add(bookmark.url)
        unique.append(bookmark)
    return unique, dropped


def _seed_categories(existing: Store) -> tuple[dict[str, Category], dict[str, Site]]:
    categories: dict[str, Category] = {}
    derived: dict[str, Site] = {}
    for category in existing.categories:
        preserved = []
        for site in category.sites:
            if site.is_sync_managed:
                derived[site.url] = site
            else:
                preserved.append(site)
        if category.id in categories:
            categories[category.id].sites.extend(preserved)
            continue
        categories[category.id] = Category(
            id=category.id,
            name=category.name,
            icon=category.icon,
            order=category.order,
            sites=preserved,
            extra=dict(category.extra),
            present=category.present,
        )
    return categories, derived


def _category_from_rule(rule: ClassificationRule, order: int) -> Category:
    return Category(id=rule.id, name=rule.name, icon=rule.icon, order=order)


def _build_site(
    bookmark: BookmarkEntry, prior: Site | None, icon_prefix: str
) -> Site:
    if prior is not None:
        return Site(
            id=prior.id,
            name=bookmark.name,
            url=bookmark.url,
            description=prior.description,
            icon=prior.icon,
            provenance=PROVENANCE_SYNC,
            extra=dict(prior.extra),
            present=prior.present,
        )

    filename = icon_filename(bookmark.url)
    return Site(
        id=site_id_for(bookmark.url),
        name=bookmark.name,
        url=bookmark.url,
        description=hostname_for(bookmark.url),
        icon=f"{icon_prefix.rstrip('/')}/{filename}" if filename else "",
        provenance=PROVENANCE_SYNC,
    )


def reconcile(
    existing: Store,
    bookmarks: Iterable[BookmarkEntry],
    classifier: Classifier,
    icon_prefix: str = DEFAULT_ICON_PREFIX,
) -> ReconcileResult:
    """Merge freshly exported bookmarks into an existing store.

    Manually curated sites (no provenance) are carried over as-is. Every
    sync-managed site from the previous run is superseded by this batch,
    keeping its id and icon when the same URL comes back.
    """
    categories, derived = _seed_categories(existing)
    next_order = max((c.order or 0 for c in existing.categories), default=0) + 1
    unique, dropped = dedupe_bookmarks(bookmarks)

    result = ReconcileResult(
        store=Store(title=existing.title), duplicates_dropped=dropped
    )
    new_ids: list[str] = []

    for bookmark in unique:
        rule = classifier.classify(bookmark.url, bookmark.name)
        category = categories.get(rule.id)
        if category is None:
            category = _category_from_rule(rule, next_order)
            next_order += 1
            categories[rule.id] = category
            new_ids.append(rule.id)

        prior = derived.get(bookmark.url)
        site = _build_site(bookmark, prior, icon_prefix)
        category.sites.append(site)
        if prior is None:
            result.added_sites.append(site)
        else:
            result.reused_sites.append(site)

    result.store.categories = list(categories.values())
    result.created_categories = new_ids
    return result
