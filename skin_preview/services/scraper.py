"""HTML scraper service.

This module scrapes a blog's front page (and its blog info API) for data the
RSS feed does not carry: visitor counts, tags, notices, recent comments, the
category tree, platform head resources and the navigation menu.

Scraping is best-effort. Any failure leaves the affected fields at their
defaults and never stops a hydration.
"""

import asyncio
import httpx
from typing import Any, Dict, Optional

from skin_preview.config import ServerConfig, get_config
from skin_preview.log_system.unified_logger import UnifiedLogger
from skin_preview.models.schemas import Notice, ScrapedData
from skin_preview.services import extractors


BLOG_INFO_PATH = "/m/api/blog/info"


async def scrape_blog(base_url: str, config: Optional[ServerConfig] = None) -> ScrapedData:
    """Scrape a blog's front page and info API.

    The two requests run concurrently and fail independently.

    Args:
        base_url: Blog base URL (no trailing slash)
        config: Optional configuration (timeouts, user agent)

    Returns:
        ScrapedData, all defaults if nothing could be fetched
    """
    logger = UnifiedLogger.get_logger(__name__)
    config = config or get_config()
    logger.info(f"Scraping blog: {base_url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=config.page_timeout,
        headers={"User-Agent": config.user_agent},
    ) as client:
        api_data, html = await asyncio.gather(
            _fetch_blog_info(client, base_url, config),
            _fetch_page(client, base_url, config),
        )

    data = extract_scraped_data(html or "", base_url, api_data)
    logger.info(
        f"Scraped {len(data.tags)} tags, {len(data.notices)} notices, "
        f"{len(data.recent_comments)} comments, {len(data.category_tree)} categories"
    )
    return data


async def _fetch_blog_info(client: httpx.AsyncClient, base_url: str,
                           config: ServerConfig) -> Optional[Dict[str, Any]]:
    """Fetch the ``data`` object of the blog info API, or None."""
    logger = UnifiedLogger.get_logger(__name__)
    try:
        response = await client.get(f"{base_url}{BLOG_INFO_PATH}", timeout=config.api_timeout)
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Blog info API unavailable: {e}")
        return None

    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return None


async def _fetch_page(client: httpx.AsyncClient, base_url: str,
                      config: ServerConfig) -> Optional[str]:
    """Fetch the blog front page HTML, or None."""
    logger = UnifiedLogger.get_logger(__name__)
    try:
        response = await client.get(f"{base_url}/", timeout=config.page_timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch page: {e}")
        return None
    return response.text


def extract_scraped_data(html: str, base_url: str,
                         api_data: Optional[Dict[str, Any]] = None) -> ScrapedData:
    """Run every field's extractors over fetched HTML.

    Args:
        html: Blog front page HTML (may be empty)
        base_url: Blog base URL used to absolutise links
        api_data: ``data`` object from the blog info API, if any

    Returns:
        ScrapedData
    """
    data = ScrapedData(authoritative_api=api_data)

    notice = (api_data or {}).get("notice")
    if isinstance(notice, dict) and notice.get("title"):
        data.notices.append(Notice(
            title=str(notice["title"]).strip(),
            link=f"{base_url}{notice.get('link') or '/notice'}",
        ))

    if not html:
        return data

    data.injected_head = extractors.extract_injected_head(html, base_url)
    data.nav_menu = extractors.first_match(extractors.MENU_EXTRACTORS, html, base_url) or ""
    data.visitor_counts = extractors.extract_visitor_counts(html, base_url)
    data.tags = extractors.extract_tags(html, base_url)

    seen_titles = {n.title for n in data.notices}
    for scraped_notice in extractors.extract_notices(html, base_url):
        if scraped_notice.title not in seen_titles:
            seen_titles.add(scraped_notice.title)
            data.notices.append(scraped_notice)

    data.recent_comments = extractors.extract_recent_comments(html, base_url)
    data.structured_config = extractors.first_match(extractors.CONFIG_EXTRACTORS, html, base_url)
    data.category_tree = extractors.first_match(extractors.CATEGORY_EXTRACTORS, html, base_url) or []
    return data
