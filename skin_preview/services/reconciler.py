"""Data reconciliation.

Merges the RSS feed and the scraped page into the single ReconciledView the
hydrator renders from. Precedence for blog metadata is blog info API, then
the page's platform config object, then the feed. Category post counts come
from the feed when it has posts for a category, since it reflects what is
published right now; scraped counts fill in the rest.
"""

from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Sequence, Tuple
from urllib.parse import quote

from skin_preview.log_system.unified_logger import UnifiedLogger
from skin_preview.models.schemas import (
    Category,
    ChildCategory,
    FeedEntry,
    ParsedFeed,
    ReconciledView,
    ScrapedData,
    Tag,
)
from skin_preview.services.colors import CATEGORY_PALETTE, assign_category_colors


# count / max_count must exceed these for tiers 1..4; anything lower is tier 5
TIER_THRESHOLDS: Tuple[float, ...] = (0.8, 0.6, 0.4, 0.2)
DEFAULT_TIER = 3


def category_link(base_url: str, key: str) -> str:
    """Category page URL; ``key`` is encoded as a single path segment."""
    return f"{base_url}/category/{quote(key, safe='')}"


def tier_for_ratio(ratio: float, thresholds: Sequence[float] = TIER_THRESHOLDS) -> int:
    """Popularity tier (1 most used .. 5 least) for ``count / max_count``."""
    for tier, threshold in enumerate(thresholds, start=1):
        if ratio > threshold:
            return tier
    return len(thresholds) + 1


def count_category_names(entries: Iterable[FeedEntry]) -> "OrderedDict[str, int]":
    """How often each category name (every path part) appears in the feed."""
    counts: "OrderedDict[str, int]" = OrderedDict()
    for entry in entries:
        for category in entry.categories:
            for part in category.split("/"):
                name = part.strip()
                if name:
                    counts[name] = counts.get(name, 0) + 1
    return counts


def compute_feed_tiers(entries: Iterable[FeedEntry]) -> Dict[str, int]:
    """Tier per category name, by frequency relative to the most used one."""
    counts = count_category_names(entries)
    if not counts:
        return {}
    max_count = max(counts.values())
    return {name: tier_for_ratio(count / max_count) for name, count in counts.items()}


def tags_from_feed(entries: Sequence[FeedEntry], base_url: str) -> List[Tag]:
    """Tag cloud built from feed categories when the page had no tags."""
    tiers = compute_feed_tiers(entries)
    return [
        Tag(name=name, link=f"{base_url}/tag/{quote(name, safe='')}", popularity_tier=tier)
        for name, tier in tiers.items()
    ]


def resolve_tags(scraped_tags: Sequence[Tag], entries: Sequence[FeedEntry], base_url: str) -> List[Tag]:
    """Scraped tags with missing tiers filled from the feed, or feed tags."""
    if not scraped_tags:
        return tags_from_feed(entries, base_url)

    tiers = compute_feed_tiers(entries)
    return [
        Tag(
            name=tag.name,
            link=tag.link,
            popularity_tier=tag.popularity_tier or tiers.get(tag.name, DEFAULT_TIER),
        )
        for tag in scraped_tags
    ]


def feed_category_tree(entries: Iterable[FeedEntry]) -> "OrderedDict[str, List[str]]":
    """Parent -> child names from each entry's primary category, in feed order."""
    tree: "OrderedDict[str, List[str]]" = OrderedDict()
    for entry in entries:
        full = entry.primary_category
        if not full:
            continue
        parts = full.split("/")
        parent = parts[0].strip()
        if not parent:
            continue
        children = tree.setdefault(parent, [])
        if len(parts) > 1:
            child = "/".join(parts[1:]).strip()
            if child and child not in children:
                children.append(child)
    return tree


def feed_category_counts(entries: Iterable[FeedEntry]) -> Dict[str, int]:
    """Live post counts keyed by ``Parent`` and ``Parent/Child``."""
    counts: Dict[str, int] = {}
    for entry in entries:
        full = entry.primary_category
        if not full:
            continue
        counts[full] = counts.get(full, 0) + 1
        parent = full.split("/")[0].strip()
        if parent != full:
            counts[parent] = counts.get(parent, 0) + 1
    return counts


def merge_category_tree(scraped_tree: Sequence[Category], entries: Sequence[FeedEntry],
                        base_url: str) -> List[Category]:
    """Scraped categories augmented with feed-only ones, counts from the feed first.

    The scraped tree is not modified; new Category objects are returned.
    """
    feed_tree = feed_category_tree(entries)
    feed_counts = feed_category_counts(entries)
    merged: List[Category] = []

    for category in scraped_tree:
        children = [
            ChildCategory(
                name=child.name,
                link=child.link or category_link(base_url, f"{category.name}/{child.name}"),
                post_count=feed_counts.get(f"{category.name}/{child.name}") or child.post_count,
            )
            for child in category.children
        ]
        known = {child.name for child in children}
        prefix = f"{category.name}/"
        for key, count in feed_counts.items():
            if key.startswith(prefix) and key[len(prefix):] not in known:
                known.add(key[len(prefix):])
                children.append(ChildCategory(
                    name=key[len(prefix):],
                    link=category_link(base_url, key),
                    post_count=count,
                ))
        merged.append(Category(
            name=category.name,
            link=category.link or category_link(base_url, category.name),
            post_count=feed_counts.get(category.name) or category.post_count,
            children=children,
        ))

    scraped_names = {category.name for category in merged}
    for parent, child_names in feed_tree.items():
        if parent in scraped_names:
            continue
        merged.append(Category(
            name=parent,
            link=category_link(base_url, parent),
            post_count=feed_counts.get(parent, 0),
            children=[
                ChildCategory(
                    name=child,
                    link=category_link(base_url, f"{parent}/{child}"),
                    post_count=feed_counts.get(f"{parent}/{child}", 0),
                )
                for child in child_names
            ],
        ))
    return merged


def _text(*values: Any) -> str:
    """First non-blank string among values."""
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def reconcile(feed: ParsedFeed, scraped: ScrapedData, base_url: str,
              palette: Tuple[str, ...] = CATEGORY_PALETTE) -> ReconciledView:
    """Build the view the hydrator renders from.

    Args:
        feed: Parsed RSS feed
        scraped: Scraped page data (defaults when scraping failed)
        base_url: Blog base URL
        palette: Category colour palette

    Returns:
        ReconciledView
    """
    logger = UnifiedLogger.get_logger(__name__)
    api: Dict[str, Any] = scraped.authoritative_api or {}
    blog_config: Dict[str, Any] = (scraped.structured_config or {}).get("BLOG") or {}
    if not isinstance(blog_config, dict):
        blog_config = {}
    channel = feed.channel

    title = _text(api.get("blogTitle"), blog_config.get("title"), channel.title)
    description = _text(api.get("blogDescription"), blog_config.get("description"), channel.description)
    logo_url = _text(api.get("blogLogoURL"), channel.image_url) or f"{base_url}/favicon.ico"
    display_name = _text(api.get("blogName"), blog_config.get("nickName"), title)

    categories = merge_category_tree(scraped.category_tree, feed.entries, base_url)
    counts: Dict[str, int] = {}
    for category in categories:
        counts[category.name] = category.post_count
        for child in category.children:
            counts[f"{category.name}/{child.name}"] = child.post_count

    view = ReconciledView(
        base_url=base_url,
        title=title,
        description=description,
        logo_url=logo_url,
        display_name=display_name,
        categories=categories,
        category_colors=assign_category_colors(categories, palette),
        category_counts=counts,
        tags=resolve_tags(scraped.tags, feed.entries, base_url),
        entries=feed.entries,
        scraped=scraped,
    )
    logger.info(
        f"Reconciled {len(view.entries)} entries, {len(view.categories)} categories, "
        f"{len(view.tags)} tags for {base_url}"
    )
    return view
