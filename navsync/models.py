from __future__ import annotations

from dataclasses import dataclass, field

PROVENANCE_SYNC = "sync-managed"

_SITE_KEYS = ("id", "name", "url", "description", "icon", "provenance")
_CATEGORY_KEYS = ("id", "name", "icon", "order", "sites")


@dataclass(frozen=True)
class BookmarkEntry:
    url: str
    name: str


@dataclass(frozen=True)
class ClassificationRule:
    id: str
    name: str
    icon: str
    order: int
    keywords: frozenset[str] = frozenset()
    domains: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, data: dict) -> "ClassificationRule":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            icon=str(data.get("icon") or ""),
            order=int(data.get("order") or 0),
            keywords=frozenset(str(k).lower() for k in data.get("keywords") or []),
            domains=frozenset(str(d).lower() for d in data.get("domains") or []),
        )


@dataclass
class Site:
    id: str
    name: str
    url: str
    description: str = ""
    icon: str = ""
    provenance: str | None = None
    extra: dict = field(default_factory=dict)
    present: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    @property
    def is_sync_managed(self) -> bool:
        return self.provenance == PROVENANCE_SYNC

    def as_dict(self) -> dict:
        payload = dict(self.extra)
        for key in _SITE_KEYS:
            value = getattr(self, key)
            if value is not None or key in self.present:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "Site":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            url=data.get("url"),
            description=data.get("description"),
            icon=data.get("icon"),
            provenance=data.get("provenance"),
            extra={k: v for k, v in data.items() if k not in _SITE_KEYS},
            present=frozenset(k for k in _SITE_KEYS if k in data),
        )


@dataclass
class Category:
    id: str
    name: str
    icon: str = ""
    order: int = 0
    sites: list[Site] = field(default_factory=list)
    extra: dict = field(default_factory=dict)
    present: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    def as_dict(self) -> dict:
        payload = dict(self.extra)
        for key in ("id", "name", "icon", "order"):
            value = getattr(self, key)
            if value is not None or key in self.present:
                payload[key] = value
        payload["sites"] = [site.as_dict() for site in self.sites]
        return payload

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            icon=data.get("icon"),
            order=data.get("order"),
            sites=[Site.from_dict(site) for site in data.get("sites") or []],
            extra={k: v for k, v in data.items() if k not in _CATEGORY_KEYS},
            present=frozenset(k for k in _CATEGORY_KEYS if k in data),
        )


@dataclass
class Store:
    title: str = ""
    categories: list[Category] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "categories": [category.as_dict() for category in self.categories],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Store":
        return cls(
            title=data.get("title") or "",
            categories=[Category.from_dict(c) for c in data.get("categories") or []],
        )

    def iter_sites(self):
        for category in self.categories:
            yield from category.sites
