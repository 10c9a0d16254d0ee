"""Unit tests for data reconciliation and category colours."""

from datetime import datetime

from skin_preview.models.schemas import (
    Category,
    ChildCategory,
    FeedChannel,
    FeedEntry,
    ParsedFeed,
    ScrapedData,
    Tag,
)
from skin_preview.services.colors import CATEGORY_PALETTE, assign_category_colors, color_for
from skin_preview.services.reconciler import (
    compute_feed_tiers,
    merge_category_tree,
    reconcile,
    resolve_tags,
    tier_for_ratio,
)


BASE = "https://myblog.tistory.com"


def _entry(number, categories=()):
    return FeedEntry(
        title=f"Post {number}",
        link=f"{BASE}/{number}",
        published_at=datetime(2024, 1, number),
        categories=tuple(categories),
    )


def _feed(entries=(), title="Feed Title", description="Feed desc", image_url=None):
    return ParsedFeed(
        channel=FeedChannel(title=title, description=description, image_url=image_url),
        entries=tuple(entries),
    )


class TestMetadataPrecedence:
    """Tests for title/description/logo/name precedence."""

    def test_api_wins(self):
        """Test that API values beat config and feed values."""
        scraped = ScrapedData(
            authoritative_api={
                "blogTitle": "API Title",
                "blogDescription": "API desc",
                "blogLogoURL": "https://cdn/logo.png",
                "blogName": "api-name",
            },
            structured_config={"BLOG": {"title": "Config Title", "nickName": "config-nick"}},
        )
        view = reconcile(_feed(), scraped, BASE)
        assert view.title == "API Title"
        assert view.description == "API desc"
        assert view.logo_url == "https://cdn/logo.png"
        assert view.display_name == "api-name"

    def test_config_beats_feed(self):
        """Test that the platform config is used when the API is missing."""
        scraped = ScrapedData(structured_config={"BLOG": {"title": "Config Title", "nickName": "nick"}})
        view = reconcile(_feed(), scraped, BASE)
        assert view.title == "Config Title"
        assert view.description == "Feed desc"
        assert view.display_name == "nick"

    def test_feed_is_last_resort(self):
        """Test that a failed scrape falls back to the feed."""
        view = reconcile(_feed(image_url="https://img/feed.png"), ScrapedData(), BASE)
        assert view.title == "Feed Title"
        assert view.logo_url == "https://img/feed.png"
        assert view.display_name == "Feed Title"

    def test_logo_defaults_to_favicon(self):
        """Test the favicon fallback."""
        view = reconcile(_feed(), ScrapedData(), BASE)
        assert view.logo_url == f"{BASE}/favicon.ico"
        assert view.blog_name == "myblog"


class TestCategories:
    """Tests for category merging and counts."""

    def test_feed_counts_override_scraped(self):
        """Test that feed counts replace scraped counts where the feed has posts."""
        scraped_tree = [
            Category(name="Dev", link=f"{BASE}/category/Dev", post_count=40, children=[
                ChildCategory(name="Python", link=f"{BASE}/category/Dev/Python", post_count=30),
                ChildCategory(name="Go", link=f"{BASE}/category/Dev/Go", post_count=10),
            ]),
            Category(name="Life", link=f"{BASE}/category/Life", post_count=5),
        ]
        entries = [_entry(1, ["Dev/Python"]), _entry(2, ["Dev/Python"]), _entry(3, ["Dev/Rust"])]

        merged = merge_category_tree(scraped_tree, entries, BASE)

        dev, life = merged
        assert dev.post_count == 3
        assert [(c.name, c.post_count) for c in dev.children] == [("Python", 2), ("Go", 10), ("Rust", 1)]
        assert life.post_count == 5
        assert scraped_tree[0].post_count == 40

    def test_feed_only_categories_appended(self):
        """Test categories the page did not show come from the feed."""
        entries = [_entry(1, ["Travel/Japan"]), _entry(2, ["Notes"]), _entry(3)]
        merged = merge_category_tree([], entries, BASE)
        assert [(c.name, c.post_count) for c in merged] == [("Travel", 1), ("Notes", 1)]
        assert merged[0].children[0].name == "Japan"
        assert merged[0].children[0].link == f"{BASE}/category/Travel%2FJapan"

    def test_view_counts_map(self):
        """Test the flattened count map."""
        view = reconcile(_feed([_entry(1, ["Dev/Python"])]), ScrapedData(), BASE)
        assert view.category_counts == {"Dev": 1, "Dev/Python": 1}


class TestTags:
    """Tests for tag tiers."""

    def test_tier_thresholds(self):
        """Test the ratio boundaries."""
        assert tier_for_ratio(1.0) == 1
        assert tier_for_ratio(0.8) == 2
        assert tier_for_ratio(0.61) == 2
        assert tier_for_ratio(0.5) == 3
        assert tier_for_ratio(0.3) == 4
        assert tier_for_ratio(0.2) == 5
        assert tier_for_ratio(0.0) == 5

    def test_tiers_monotonic_in_frequency(self):
        """Test that more frequent names never get a worse tier."""
        entries = (
            [_entry(i, ["Dev/Python"]) for i in range(1, 11)]
            + [_entry(11, ["Dev/Go"])] * 5
            + [_entry(12, ["Life"])] * 2
        )
        tiers = compute_feed_tiers(entries)
        assert tiers["Dev"] == 1
        assert tiers["Dev"] <= tiers["Python"] <= tiers["Go"] <= tiers["Life"]
        assert tiers["Life"] == 5

    def test_feed_tags_when_none_scraped(self):
        """Test the tag cloud built from feed categories."""
        tags = resolve_tags([], [_entry(1, ["A"]), _entry(2, ["A", "B"])], BASE)
        assert [(t.name, t.popularity_tier) for t in tags] == [("A", 1), ("B", 3)]
        assert tags[0].link == f"{BASE}/tag/A"

    def test_scraped_tag_tiers_filled(self):
        """Test that scraped tags without a tier get the feed tier or the default."""
        scraped = [
            Tag(name="A", link=f"{BASE}/tag/A"),
            Tag(name="Z", link=f"{BASE}/tag/Z"),
            Tag(name="K", link=f"{BASE}/tag/K", popularity_tier=5),
        ]
        tags = resolve_tags(scraped, [_entry(1, ["A"])], BASE)
        assert [t.popularity_tier for t in tags] == [1, 3, 5]


class TestColors:
    """Tests for the category colour mapper."""

    def test_children_inherit_parent_color(self):
        """Test parent, child and composite keys share one colour."""
        categories = [
            Category(name="Dev", link="", children=[ChildCategory(name="Python", link="")]),
            Category(name="Life", link=""),
        ]
        colors = assign_category_colors(categories)
        assert colors["Dev"] == CATEGORY_PALETTE[0]
        assert colors["Dev/Python"] == colors["Dev"]
        assert colors["Python"] == colors["Dev"]
        assert colors["Life"] == CATEGORY_PALETTE[1]

    def test_palette_cycles(self):
        """Test that the palette wraps after 16 parents."""
        categories = [Category(name=f"C{i}", link="") for i in range(len(CATEGORY_PALETTE) + 1)]
        colors = assign_category_colors(categories)
        assert colors[f"C{len(CATEGORY_PALETTE)}"] == CATEGORY_PALETTE[0]

    def test_deterministic(self):
        """Test the same input gives the same mapping."""
        categories = [Category(name="X", link=""), Category(name="Y", link="")]
        assert assign_category_colors(categories) == assign_category_colors(categories)

    def test_color_for_falls_back_to_parent(self):
        """Test lookups of unknown children use the parent colour."""
        colors = {"Dev": "#111111"}
        assert color_for(colors, "Dev/Unknown") == "#111111"
        assert color_for(colors, "Nope", default="#000000") == "#000000"
