"""Skin preview MCP tools.

This module provides MCP tools for resolving blogs, inspecting the data a
preview would use and hydrating skins.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

from typing import Any, Dict
from mcp.server.fastmcp import Context

from skin_preview.config import get_config
from skin_preview.errors import FeedUnavailableError
from skin_preview.log_system.unified_logger import UnifiedLogger
from skin_preview.services.hydrator import PAGE_TYPES, fetch_blog_data, hydrate
from skin_preview.services.reconciler import reconcile
from skin_preview.services.resolver import resolve_blog_url as resolve


async def resolve_blog_url(target: str = "", ctx: Context = None) -> Dict[str, Any]:
    """Resolve a blog identifier or URL to the base URL used for previews.

    Args:
        target: Blog id (e.g. "myblog") or URL (empty string uses the configured default)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - target: the identifier that was resolved
        - base_url: blog base URL without trailing slash
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"resolve_blog_url called: target={target}")

    target = target or get_config().default_target
    return {
        "success": True,
        "target": target,
        "base_url": resolve(target),
    }


async def hydrate_skin(
    skin_html: str,
    target: str = "",
    page_type: str = "index",
    entry_id: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Render a skin template with live data from a blog.

    Fetches the blog's RSS feed and scrapes its front page, then substitutes
    the skin's [##_token_##] placeholders and <s_block> regions. If the feed
    cannot be loaded the skin is returned unchanged with an error banner.

    Args:
        skin_html: Raw skin.html template text
        target: Blog id or URL (empty string uses the configured default)
        page_type: One of index, post, guestbook, tag, category, search
        entry_id: Post id or slug to show on post pages (empty string for the latest post)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - base_url: blog the skin was hydrated against
        - page_type: page type rendered
        - html: hydrated HTML
        - error: string if success is False
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"hydrate_skin called: target={target}, page_type={page_type}, entry_id={entry_id}")

    if page_type not in PAGE_TYPES:
        return {
            "success": False,
            "error": f"Unknown page_type '{page_type}'. Use one of: {', '.join(PAGE_TYPES)}",
        }

    config = get_config()
    base_url = resolve(target or config.default_target)
    html = await hydrate(skin_html, base_url, page_type, entry_id or None, config)

    return {
        "success": True,
        "base_url": base_url,
        "page_type": page_type,
        "html": html,
    }


async def inspect_blog(target: str = "", ctx: Context = None) -> Dict[str, Any]:
    """Show the reconciled data a preview of this blog would render.

    Useful to check which scrape patterns matched before looking at the page.

    Args:
        target: Blog id or URL (empty string uses the configured default)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - blog: title, description, logo_url, display_name, base_url
        - entries: number of feed entries and their titles
        - visitors: today, yesterday, total
        - categories: tree with post counts and colours
        - tags, notices, recent_comments: counts
        - head_injected, menu_scraped: whether the live fragments were found
        - error: string if the feed could not be loaded
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"inspect_blog called: target={target}")

    config = get_config()
    base_url = resolve(target or config.default_target)

    try:
        feed, scraped = await fetch_blog_data(base_url, config)
    except FeedUnavailableError as e:
        return {
            "success": False,
            "error": str(e),
        }
    view = reconcile(feed, scraped, base_url)

    return {
        "success": True,
        "blog": {
            "base_url": view.base_url,
            "title": view.title,
            "description": view.description,
            "logo_url": view.logo_url,
            "display_name": view.display_name,
        },
        "entries": {
            "count": len(view.entries),
            "titles": [entry.title for entry in view.entries],
        },
        "visitors": {
            "today": scraped.visitor_counts.today,
            "yesterday": scraped.visitor_counts.yesterday,
            "total": scraped.visitor_counts.total,
        },
        "categories": [
            {
                "name": category.name,
                "count": category.post_count,
                "color": view.category_colors.get(category.name, ""),
                "children": [
                    {"name": child.name, "count": child.post_count}
                    for child in category.children
                ],
            }
            for category in view.categories
        ],
        "tags": len(view.tags),
        "notices": len(scraped.notices),
        "recent_comments": len(scraped.recent_comments),
        "head_injected": bool(scraped.injected_head),
        "menu_scraped": bool(scraped.nav_menu),
    }


# List of preview tools for registration
preview_tools = [
    resolve_blog_url,
    hydrate_skin,
    inspect_blog,
]
