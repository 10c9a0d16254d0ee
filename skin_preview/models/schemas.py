"""Data models for skin_preview.

This module defines the feed, scrape and reconciled-view structures that flow
through one hydration request. Nothing here outlives a request.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse


@dataclass(frozen=True)
class FeedEntry:
    """Represents one post from the blog's RSS feed."""

    title: str
    link: str
    published_at: Optional[datetime]
    categories: Tuple[str, ...] = ()
    author: Optional[str] = None
    body_html: str = ""

    @property
    def id(self) -> str:
        """Last path segment of the link (``57`` or ``entry-slug``)."""
        path = urlparse(self.link).path.rstrip("/")
        return unquote(path.rsplit("/", 1)[-1]) if path else ""

    @property
    def primary_category(self) -> Optional[str]:
        """The first category, as the platform displays it (``Parent/Child``)."""
        return self.categories[0].strip() if self.categories else None


@dataclass(frozen=True)
class FeedChannel:
    """Blog-level metadata from the RSS channel element."""

    title: str = ""
    description: str = ""
    image_url: Optional[str] = None


@dataclass(frozen=True)
class ParsedFeed:
    """Channel metadata plus entries, in feed order."""

    channel: FeedChannel
    entries: Tuple[FeedEntry, ...] = ()


@dataclass
class VisitorCounts:
    """Visitor counters as displayed by the blog (numeric strings)."""

    today: str = "0"
    yesterday: str = "0"
    total: str = "0"


@dataclass
class Tag:
    """A tag from the blog's tag cloud.

    popularity_tier is 1 (most used) to 5 (least used), or None when the page
    did not say and the tier must be inferred from the feed.
    """

    name: str
    link: str
    popularity_tier: Optional[int] = None

    @property
    def cloud_class(self) -> str:
        return f"cloud{self.popularity_tier or 3}"


@dataclass
class Notice:
    """A notice (pinned announcement) link."""

    title: str
    link: str


@dataclass
class RecentComment:
    """A comment from the blog's recent-comments widget."""

    text: str
    link: str
    author_name: str = ""
    timestamp: str = ""


@dataclass
class ChildCategory:
    """A second-level category."""

    name: str
    link: str
    post_count: int = 0


@dataclass
class Category:
    """A top-level category with its children."""

    name: str
    link: str
    post_count: int = 0
    children: List[ChildCategory] = field(default_factory=list)

    def find_child(self, name: str) -> Optional[ChildCategory]:
        for child in self.children:
            if child.name == name:
                return child
        return None


@dataclass
class ScrapedData:
    """Everything pulled from the blog page and the blog info API.

    Every field has a usable default so a failed scrape still hydrates.
    """

    visitor_counts: VisitorCounts = field(default_factory=VisitorCounts)
    tags: List[Tag] = field(default_factory=list)
    notices: List[Notice] = field(default_factory=list)
    recent_comments: List[RecentComment] = field(default_factory=list)
    category_tree: List[Category] = field(default_factory=list)
    structured_config: Optional[Dict[str, Any]] = None
    authoritative_api: Optional[Dict[str, Any]] = None
    injected_head: str = ""
    nav_menu: str = ""


@dataclass
class ReconciledView:
    """The merged view of feed and scraped data handed to the hydrator."""

    base_url: str
    title: str
    description: str
    logo_url: str
    display_name: str
    categories: List[Category]
    category_colors: Dict[str, str]
    category_counts: Dict[str, int]
    tags: List[Tag]
    entries: Tuple[FeedEntry, ...]
    scraped: ScrapedData

    @property
    def blog_name(self) -> str:
        """First host label of the base URL (``myblog`` for myblog.tistory.com)."""
        host = urlparse(self.base_url).hostname or ""
        return host.split(".", 1)[0]
