import copy
import json

from navsync.models import PROVENANCE_SYNC, BookmarkEntry, Category, Site, Store
from navsync.services.classifier import DEFAULT_RULES, Classifier
from navsync.services.common import site_id_for
from navsync.services.reconcile import reconcile
from navsync.services.serializer import deserialize, serialize


def _manual_site(url="https://example.com", **extra):
    return Site(
        id="manual-1",
        name="Example",
        url=url,
        description="hand curated",
        icon="/sitelogo/example.com.ico",
        extra=extra,
    )


def _store(*categories):
    return Store(title="Nav", categories=list(categories))


def _sites_by_url(store):
    return {site.url: site for site in store.iter_sites()}


def test_new_bookmark_lands_in_new_category_next_to_preserved_site():
    manual = _manual_site()
    existing = _store(
        Category(id="favorites", name="Favorites", order=1, sites=[manual])
    )

    result = reconcile(
        existing,
        [BookmarkEntry(url="https://openai.com", name="OpenAI")],
        Classifier(DEFAULT_RULES),
    )

    store = result.store
    assert [c.id for c in store.categories] == ["favorites", "ai-tools"]
    assert store.categories[0].sites == [manual]
    ai = store.categories[1]
    assert ai.order == 2
    assert len(ai.sites) == 1
    site = ai.sites[0]
    assert site.url == "https://openai.com"
    assert site.name == "OpenAI"
    assert site.provenance == PROVENANCE_SYNC
    assert site.id == site_id_for("https://openai.com")
    assert site.icon == "/sitelogo/openai.com.ico"
    assert result.added_sites == [site]
    assert result.created_categories == ["ai-tools"]


def test_duplicate_urls_in_batch_keep_first_occurrence():
    result = reconcile(
        _store(),
        [
            BookmarkEntry(url="https://foo.com/a", name="x"),
            BookmarkEntry(url="https://foo.com/a", name="y"),
        ],
        Classifier(DEFAULT_RULES),
    )

    sites = [s for s in result.store.iter_sites() if s.url == "https://foo.com/a"]
    assert len(sites) == 1
    assert sites[0].name == "x"
    assert result.duplicates_dropped == 1


def test_previously_synced_url_keeps_id_and_icon():
    prior = Site(
        id="legacy-id",
        name="Old Name",
        url="https://github.com/",
        description="kept description",
        icon="https://cdn.example/github.png",
        provenance=PROVENANCE_SYNC,
    )
    existing = _store(Category(id="dev-tools", name="Dev", order=3, sites=[prior]))

    result = reconcile(
        existing,
        [BookmarkEntry(url="https://github.com/", name="GitHub")],
        Classifier(DEFAULT_RULES),
    )

    site = _sites_by_url(result.store)["https://github.com/"]
    assert site.id == "legacy-id"
    assert site.icon == "https://cdn.example/github.png"
    assert site.description == "kept description"
    assert site.name == "GitHub"
    assert result.reused_sites == [site]
    assert result.added_sites == []


def test_synced_sites_missing_from_batch_are_dropped_but_manual_ones_stay():
    manual = _manual_site(url="https://manual.example", pinned=True)
    stale = Site(
        id="stale",
        name="Gone",
        url="https://gone.example",
        provenance=PROVENANCE_SYNC,
    )
    existing = _store(
        Category(id="misc", name="Misc", order=5, sites=[stale, manual]),
    )

    result = reconcile(existing, [], Classifier(DEFAULT_RULES))

    assert [c.id for c in result.store.categories] == ["misc"]
    assert result.store.categories[0].sites == [manual]
    assert result.store.categories[0].order == 5


def test_manual_sites_survive_unchanged_across_repeated_runs():
    manual = _manual_site(url="https://openai.com", tags=["mine"])
    existing = _store(
        Category(id="ai-tools", name="AI", icon="x", order=7, sites=[manual]),
        Category(id="empty", name="Empty", order=2),
    )
    snapshot = copy.deepcopy(existing)
    batch = [
        BookmarkEntry(url="https://openai.com", name="OpenAI"),
        BookmarkEntry(url="https://example.org/", name="Other"),
    ]
    classifier = Classifier(DEFAULT_RULES)

    first = reconcile(existing, batch, classifier).store
    second = reconcile(first, batch, classifier).store

    assert existing == snapshot
    for store in (first, second):
        manual_sites = [s for s in store.iter_sites() if not s.is_sync_managed]
        assert manual_sites == [manual]
        synced = [s for s in store.iter_sites() if s.is_sync_managed]
        assert sorted(s.url for s in synced) == [
            "https://example.org/",
            "https://openai.com",
        ]
    assert first == second


def test_new_categories_get_increasing_order_in_creation_order():
    existing = _store(
        Category(id="b", name="B", order=4),
        Category(id="a", name="A", order=9),
    )
    batch = [
        BookmarkEntry(url="https://www.youtube.com/", name="YouTube"),
        BookmarkEntry(url="https://openai.com/", name="OpenAI"),
        BookmarkEntry(url="https://www.bilibili.com/", name="Bilibili"),
    ]

    result = reconcile(existing, batch, Classifier(DEFAULT_RULES))

    assert [(c.id, c.order) for c in result.store.categories] == [
        ("b", 4),
        ("a", 9),
        ("media", 10),
        ("ai-tools", 11),
    ]
    assert [s.name for s in result.store.categories[2].sites] == [
        "YouTube",
        "Bilibili",
    ]


def test_empty_store_starts_ordering_at_one():
    result = reconcile(
        Store(title="Nav"),
        [BookmarkEntry(url="https://nothing-matches.example/", name="misc")],
        Classifier(DEFAULT_RULES),
    )

    assert result.store.title == "Nav"
    assert [(c.id, c.order) for c in result.store.categories] == [("my-favorites", 1)]


def test_existing_category_metadata_is_not_rewritten_by_rules():
    existing = _store(Category(id="ai-tools", name="My AI", icon="🧠", order=1))

    result = reconcile(
        existing,
        [BookmarkEntry(url="https://openai.com", name="OpenAI")],
        Classifier(DEFAULT_RULES),
    )

    category = result.store.categories[0]
    assert (category.name, category.icon, category.order) == ("My AI", "🧠", 1)
    assert [s.url for s in category.sites] == ["https://openai.com"]


def test_custom_icon_prefix():
    result = reconcile(
        Store(),
        [BookmarkEntry(url="https://WWW.Example.com/page", name="Ex")],
        Classifier([]),
        icon_prefix="https://cdn.example/icons/",
    )

    site = result.added_sites[0]
    assert site.icon == "https://cdn.example/icons/example.com.ico"
    assert site.description == "example.com"


def test_manual_site_with_null_fields_round_trips_through_a_run():
    text = """export const mockData = {
  "title": "Nav",
  "categories": [
    {"id": "mine", "name": "Mine", "icon": null, "order": 1, "sites": [
      {"id": "m", "name": "M", "url": "https://m.example",
       "description": null, "icon": "/x.ico"}
    ]}
  ]
};
"""
    original = json.loads(text[text.index("{") : text.rindex("}") + 1])

    result = reconcile(
        deserialize(text),
        [BookmarkEntry(url="https://openai.com", name="OpenAI")],
        Classifier(DEFAULT_RULES),
    )
    written = serialize(result.store)
    saved = json.loads(written[written.index("{") : written.rindex("}") + 1])

    mine = saved["categories"][0]
    assert mine["icon"] is None
    assert mine["sites"] == original["categories"][0]["sites"]
    assert "provenance" not in mine["sites"][0]
    assert serialize(deserialize(written)) == written
