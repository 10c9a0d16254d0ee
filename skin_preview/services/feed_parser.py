"""Feed parser service.

This module fetches a blog's RSS feed and turns it into FeedEntry records.
The feed is the one source hydration cannot do without, so failures raise
FeedUnavailableError instead of returning an empty result.
"""

import httpx
import feedparser
from datetime import datetime
from typing import List, Optional, Tuple
from email.utils import parsedate_to_datetime

from skin_preview.config import ServerConfig, get_config
from skin_preview.errors import FeedUnavailableError
from skin_preview.log_system.unified_logger import UnifiedLogger
from skin_preview.models.schemas import FeedChannel, FeedEntry, ParsedFeed


FEED_PATH = "/rss"


async def parse_feed(base_url: str, config: Optional[ServerConfig] = None) -> ParsedFeed:
    """Fetch and parse the RSS feed at ``{base_url}/rss``.

    Args:
        base_url: Blog base URL (no trailing slash)
        config: Optional configuration (timeouts, user agent)

    Returns:
        ParsedFeed with channel metadata and entries in feed order

    Raises:
        FeedUnavailableError: on network errors, timeouts, non-2xx responses
            or content that is not a parseable feed
    """
    logger = UnifiedLogger.get_logger(__name__)
    config = config or get_config()
    feed_url = f"{base_url}{FEED_PATH}"
    logger.info(f"Parsing feed: {feed_url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=config.feed_timeout,
        headers={"User-Agent": config.user_agent},
    ) as client:
        try:
            response = await client.get(feed_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch feed: {e}")
            raise FeedUnavailableError(base_url, str(e) or e.__class__.__name__) from e

    return parse_feed_text(response.text, base_url)


def parse_feed_text(text: str, base_url: str = "") -> ParsedFeed:
    """Parse RSS text that has already been fetched.

    Args:
        text: Raw feed XML
        base_url: Blog base URL, used for error reporting

    Returns:
        ParsedFeed

    Raises:
        FeedUnavailableError: if the text is not a usable feed
    """
    logger = UnifiedLogger.get_logger(__name__)
    feed = feedparser.parse(text)

    if feed.bozo and not feed.entries and not feed.feed.get("title"):
        logger.error(f"Feed parsing error: {feed.bozo_exception}")
        raise FeedUnavailableError(base_url, f"malformed feed: {feed.bozo_exception}")

    channel = FeedChannel(
        title=feed.feed.get("title", "").strip(),
        description=(feed.feed.get("subtitle") or feed.feed.get("description") or "").strip(),
        image_url=(feed.feed.get("image") or {}).get("href") or None,
    )

    entries = []
    for entry in feed.entries:
        url = entry.get("link", "").strip()
        if not url:
            for link in entry.get("links", []):
                if link.get("rel") == "alternate" or link.get("href"):
                    url = link.get("href", "")
                    break

        if not url:
            continue

        entries.append(FeedEntry(
            title=entry.get("title", "").strip(),
            link=url,
            published_at=_parse_date(entry),
            categories=_parse_categories(entry),
            author=(entry.get("author") or "").strip() or None,
            body_html=_parse_body(entry),
        ))

    logger.info(f"Parsed {len(entries)} entries from feed")
    return ParsedFeed(channel=channel, entries=tuple(entries))


def _parse_categories(entry: dict) -> Tuple[str, ...]:
    """Category terms in document order, e.g. ``("Dev/Python", "Notes")``."""
    terms: List[str] = []
    for tag in entry.get("tags") or []:
        term = (tag.get("term") or "").strip()
        if term:
            terms.append(term)
    return tuple(terms)


def _parse_body(entry: dict) -> str:
    """The HTML body of an entry (description, or content:encoded)."""
    body = entry.get("summary") or entry.get("description")
    if body:
        return body
    for content in entry.get("content") or []:
        if content.get("value"):
            return content["value"]
    return ""


def _parse_date(entry: dict) -> Optional[datetime]:
    """Parse the publication date from a feed entry.

    Args:
        entry: Feed entry dict

    Returns:
        datetime if parsed successfully, None otherwise
    """
    # String fields first: they keep the feed's own UTC offset
    for field in ["published", "updated", "created"]:
        date_str = entry.get(field, "") or entry.get(f"{field}_parsed")

        if not date_str:
            continue

        # If it's already a time struct (from feedparser)
        if isinstance(date_str, tuple):
            try:
                return datetime(*date_str[:6])
            except (ValueError, TypeError):
                continue

        # Try RFC 2822 format (common in RSS)
        try:
            return parsedate_to_datetime(date_str)
        except (ValueError, TypeError):
            pass

        # Try ISO format
        try:
            return datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            pass

    return None
