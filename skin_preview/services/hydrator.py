"""Skin hydration.

``hydrate`` fetches the feed and scrapes the blog concurrently, reconciles
them and renders the skin. Rendering is a fixed pipeline of pure stages, each
taking the template text produced by the previous one:

1. prune blocks that do not belong to the requested page type
2. inject platform head resources and the blog menu
3. substitute blog-level tokens
4. expand list blocks (posts, tags, notices, recent posts/comments, related)
5. substitute the displayed post and its neighbours
6. expand paging
7. expand comments and guestbook entries
8. fill form fields with inert preview values
9. sweep every leftover token and block marker

Unknown tokens survive until step 9 because list bodies expanded in later
steps still contain them.
"""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

from skin_preview.config import ServerConfig, get_config
from skin_preview.errors import FeedUnavailableError
from skin_preview.log_system.unified_logger import UnifiedLogger
from skin_preview.models.schemas import (
    FeedEntry,
    Notice,
    ParsedFeed,
    RecentComment,
    ReconciledView,
    ScrapedData,
    Tag,
)
from skin_preview.services import template, widgets
from skin_preview.services.colors import color_for
from skin_preview.services.feed_parser import parse_feed
from skin_preview.services.formatting import (
    date_parts,
    escape,
    first_image,
    full_date,
    list_date,
    simple_date,
    summarize,
)
from skin_preview.services.reconciler import category_link, reconcile
from skin_preview.services.scraper import scrape_blog


PAGE_TYPES: Tuple[str, ...] = ("index", "post", "guestbook", "tag", "category", "search")

BODY_IDS: Dict[str, str] = {
    "index": "tt-body-index",
    "post": "tt-body-page",
    "guestbook": "tt-body-guestbook",
    "tag": "tt-body-tag",
    "category": "tt-body-category",
    "search": "tt-body-search",
}

# Pages that show posts; elsewhere post blocks are pruned
POST_PAGE_TYPES = frozenset({"index", "post", "category"})
POST_BLOCKS = ("list", "article_rep", "rp", "article_protected")

POSTS_PER_PAGE = 10
RECENT_LIMIT = 5
RELATED_LIMIT = 5

DEFAULT_CATEGORY_LABEL = "전체"
DEFAULT_COMMENTER = "방문자"
PUBLIC_LABEL = "공개"
PRIVATE_LABEL = "비공개"
PREVIEW_ACTION = "alert('프리뷰 모드')"
COMMENT_SUBMIT_ACTION = "alert('프리뷰 모드에서는 댓글을 등록할 수 없습니다.')"
GUESTBOOK_SUBMIT_ACTION = "alert('프리뷰 모드에서는 방명록을 등록할 수 없습니다.')"
COMMENT_ANCHOR = "tt-comment-area"

ERROR_BANNER = '<div style="background:red; color:white; padding:10px;">Failed to load RSS: {base_url}</div>'


@dataclass(frozen=True)
class RenderContext:
    """Per-request inputs shared by all stages."""

    view: ReconciledView
    page_type: str = "index"
    entry_id: Optional[str] = None
    now: datetime = field(default_factory=datetime.now)

    @property
    def target(self) -> Optional[FeedEntry]:
        return find_entry(self.view.entries, self.entry_id)


Stage = Callable[[str, RenderContext], str]


def find_entry(entries: Sequence[FeedEntry], entry_id: Optional[str]) -> Optional[FeedEntry]:
    """The entry addressed by ``entry_id``, falling back to the first entry.

    An entry matches when its link ends with ``/{entry_id}`` or contains
    ``/entry/{entry_id}``.
    """
    if not entries:
        return None
    if entry_id:
        decoded = unquote(entry_id)
        for entry in entries:
            link = entry.link
            if link.endswith(f"/{entry_id}") or f"/entry/{decoded}" in unquote(link):
                return entry
    return entries[0]


def _category_of(entry: FeedEntry) -> str:
    return entry.primary_category or DEFAULT_CATEGORY_LABEL


def _thumb_type(thumbnail: str) -> str:
    return "thumb_type" if thumbnail else "text_type"


# ---------------------------------------------------------------------------
# 1. Page-type pruning
# ---------------------------------------------------------------------------

def prune_page_blocks(html: str, ctx: RenderContext) -> str:
    """Remove blocks the platform would not render for this page type."""
    if ctx.page_type not in POST_PAGE_TYPES:
        for name in POST_BLOCKS:
            html = template.remove_block(html, name)
    if ctx.page_type != "guestbook":
        html = template.remove_block(html, "guest")
    if ctx.page_type != "tag":
        html = template.remove_block(html, "tag")
    return html


# ---------------------------------------------------------------------------
# 2. Head resources and menu
# ---------------------------------------------------------------------------

def inject_head_and_menu(html: str, ctx: RenderContext) -> str:
    """Scraped head/menu fragments verbatim, or synthesized equivalents."""
    scraped = ctx.view.scraped
    return template.replace_tokens(html, {
        "tistory_head": scraped.injected_head or widgets.fallback_head(ctx.view),
        "blog_menu": scraped.nav_menu or widgets.fallback_menu(ctx.view),
    })


# ---------------------------------------------------------------------------
# 3. Blog-level tokens
# ---------------------------------------------------------------------------

def substitute_scalars(html: str, ctx: RenderContext) -> str:
    """Replace blog-level tokens and unwrap sidebar structure."""
    view = ctx.view
    base = escape(view.base_url)
    title = escape(view.title)
    description = escape(view.description)
    logo = escape(view.logo_url)
    visitors = view.scraped.visitor_counts
    search_action = (
        f"window.location.href='{view.base_url}/search/'"
        "+document.getElementsByName('search')[0].value"
    )

    html = template.replace_tokens(html, {
        "title": title,
        "desc": description,
        "blog_link": base,
        "blogger": escape(view.display_name),
        "body_id": BODY_IDS.get(ctx.page_type, BODY_IDS["index"]),
        "page_title": title,
        "image": logo,
        "blog_image": f'<img src="{logo}" alt="{title}">',
        "revenue_list_upper": "",
        "revenue_list_lower": "",
        "guestbook_link": f"{base}/guestbook",
        "taglog_link": f"{base}/tag",
        "rss_url": f"{base}/rss",
        "list_conform": title,
        "list_count": str(len(view.entries)),
        "list_description": description,
        "list_style": "list",
        "search_name": "search",
        "search_text": "",
        "search_onclick_submit": search_action,
        "count_today": escape(visitors.today),
        "count_yesterday": escape(visitors.yesterday),
        "count_total": escape(visitors.total),
        "category_list": widgets.category_list(view),
        "calendar": widgets.calendar_table(view, ctx.now),
        "archive": widgets.archive_list(view),
    })
    for name in ("sidebar_element", "sidebar", "search"):
        html = template.unwrap_block(html, name)
    return html


# ---------------------------------------------------------------------------
# 4. List blocks
# ---------------------------------------------------------------------------

def _render_list_item(body: str, entry: FeedEntry, view: ReconciledView) -> str:
    category = _category_of(entry)
    thumbnail = first_image(entry.body_html)
    parts = date_parts(entry.published_at)
    title = escape(entry.title)
    body = template.render_block(
        body, "list_rep_thumbnail",
        lambda inner: template.replace_tokens(inner, {"list_rep_thumbnail": escape(thumbnail)}) if thumbnail else "",
    )
    return template.replace_tokens(body, {
        "list_rep_link": escape(entry.link),
        "list_rep_title": title,
        "list_rep_title_text": title,
        "list_rep_regdate": list_date(entry.published_at),
        "list_rep_date_year": parts["year"],
        "list_rep_date_month": parts["month"],
        "list_rep_date_day": parts["day"],
        "list_rep_date_hour": parts["hour"],
        "list_rep_date_minute": parts["minute"],
        "list_rep_date_second": parts["second"],
        "list_rep_summary": summarize(entry.body_html),
        "list_rep_category": escape(category),
        "list_rep_category_link": escape(category_link(view.base_url, category)),
        "list_rep_category_color": color_for(view.category_colors, category),
        "list_rep_rp_cnt": "0",
        "list_rep_author": escape(entry.author or view.display_name),
        "list_rep_thumbnail_url": escape(thumbnail),
    })


def _render_tag(body: str, tag: Tag, view: ReconciledView) -> str:
    return template.replace_tokens(body, {
        "tag_link": escape(tag.link or f"{view.base_url}/tag/{quote(tag.name, safe='')}"),
        "tag_name": escape(tag.name),
        "tag_class": tag.cloud_class,
    })


def _render_notice(body: str, notice: Notice) -> str:
    return template.replace_tokens(body, {
        "notice_rep_title": escape(notice.title),
        "notice_rep_link": escape(notice.link),
        "notice_rep_date": "",
    })


def _render_recent_post(body: str, entry: FeedEntry) -> str:
    return template.replace_tokens(body, {
        "rctps_rep_link": escape(entry.link),
        "rctps_rep_title": escape(entry.title),
        "rctps_rep_date": simple_date(entry.published_at),
    })


def _render_recent_comment(body: str, comment: RecentComment) -> str:
    return template.replace_tokens(body, {
        "rctrp_rep_name": escape(comment.author_name or DEFAULT_COMMENTER),
        "rctrp_rep_desc": escape(comment.text),
        "rctrp_rep_date": escape(comment.timestamp),
        "rctrp_rep_link": escape(comment.link),
    })


def related_entries(entries: Sequence[FeedEntry], target: Optional[FeedEntry],
                    limit: int = RELATED_LIMIT) -> List[FeedEntry]:
    """Other entries in the target's category, else the next few entries."""
    if target is None:
        return []
    others = [entry for entry in entries if entry is not target]
    category = target.primary_category
    related = [entry for entry in others if category and entry.primary_category == category][:limit]
    return related or others[:limit]


def _render_related(body: str, entry: FeedEntry) -> str:
    thumbnail = first_image(entry.body_html)
    if not thumbnail:
        body = template.remove_block(body, "article_related_rep_thumbnail")
    return template.replace_tokens(body, {
        "article_related_rep_link": escape(entry.link),
        "article_related_rep_title": escape(entry.title),
        "article_related_rep_date": simple_date(entry.published_at),
        "article_related_rep_type": _thumb_type(thumbnail),
        "article_related_rep_thumbnail_link": escape(thumbnail),
    })


def _expand_list(html: str, wrapper: str, name: str, items: Sequence, render) -> str:
    """Expand ``name`` inside ``wrapper``; drop the wrapper when there is nothing to list."""
    if not items:
        html = template.remove_block(html, wrapper)
    html = template.expand_block(html, name, items, render)
    return template.unwrap_block(html, wrapper)


def expand_lists(html: str, ctx: RenderContext) -> str:
    """Expand the repeating list blocks."""
    view = ctx.view
    entries = view.entries

    html = template.render_block(
        html, "list_image",
        lambda body: template.replace_tokens(body, {"list_image": escape(view.logo_url)}) if view.logo_url else "",
    )
    html = template.keep_block(html, "list_empty", not entries)
    html = template.expand_block(html, "list_rep", entries, lambda body, entry: _render_list_item(body, entry, view))
    html = template.unwrap_block(html, "list")

    html = template.expand_block(html, "tag_rep", view.tags, lambda body, tag: _render_tag(body, tag, view))
    html = template.unwrap_block(html, "tag")

    html = _expand_list(html, "notice", "notice_rep", view.scraped.notices, _render_notice)
    html = _expand_list(html, "rctps", "rctps_rep", entries[:RECENT_LIMIT], _render_recent_post)
    html = _expand_list(html, "rctrp", "rctrp_rep", view.scraped.recent_comments[:RECENT_LIMIT],
                        _render_recent_comment)
    html = _expand_list(html, "article_related", "article_related_rep",
                        related_entries(entries, ctx.target), _render_related)
    return template.unwrap_block(html, "article_related_rep_thumbnail")


# ---------------------------------------------------------------------------
# 5. Displayed post
# ---------------------------------------------------------------------------

def _article_values(entry: Optional[FeedEntry], view: ReconciledView) -> Dict[str, str]:
    if entry is None:
        # No posts: blog-level values stand in for the post
        values = {name: "" for name in (
            "article_rep_date", "article_rep_simple_date", "article_rep_date_year",
            "article_rep_date_month", "article_rep_date_day", "article_rep_date_hour",
            "article_rep_date_minute", "article_rep_date_second",
            "article_rep_thumbnail_url", "article_rep_thumbnail_raw_url",
        )}
        values.update({
            "article_rep_link": escape(view.base_url),
            "article_rep_title": escape(view.title),
            "article_rep_desc": escape(view.description),
            "article_rep_category": DEFAULT_CATEGORY_LABEL,
            "article_rep_category_link": escape(category_link(view.base_url, DEFAULT_CATEGORY_LABEL)),
            "article_rep_category_color": "",
            "article_rep_author": escape(view.display_name),
        })
        return values

    category = _category_of(entry)
    thumbnail = escape(first_image(entry.body_html))
    parts = date_parts(entry.published_at)
    return {
        "article_rep_link": escape(entry.link),
        "article_rep_title": escape(entry.title),
        "article_rep_desc": entry.body_html,
        "article_rep_category": escape(category),
        "article_rep_category_link": escape(category_link(view.base_url, category)),
        "article_rep_category_color": color_for(view.category_colors, category),
        "article_rep_date": full_date(entry.published_at),
        "article_rep_simple_date": simple_date(entry.published_at),
        "article_rep_date_year": parts["year"],
        "article_rep_date_month": parts["month"],
        "article_rep_date_day": parts["day"],
        "article_rep_date_hour": parts["hour"],
        "article_rep_date_minute": parts["minute"],
        "article_rep_date_second": parts["second"],
        "article_rep_author": escape(entry.author or view.display_name),
        "article_rep_thumbnail_url": thumbnail,
        "article_rep_thumbnail_raw_url": thumbnail,
    }


def _render_admin(body: str, entry: Optional[FeedEntry], base_url: str) -> str:
    edit_link = f"{base_url}/manage/newpost/{entry.link.rstrip('/').split('/')[-1]}" if entry else "#"
    return template.replace_tokens(body, {
        "s_ad_m_link": escape(edit_link),
        "s_ad_m_onclick": f"window.open('{edit_link}')",
        "s_ad_s1_label": PUBLIC_LABEL,
        "s_ad_s2_onclick": PREVIEW_ACTION,
        "s_ad_s2_label": PRIVATE_LABEL,
        "s_ad_t_onclick": PREVIEW_ACTION,
        "s_ad_d_onclick": PREVIEW_ACTION,
    })


def _render_tag_label(body: str, entry: Optional[FeedEntry], base_url: str) -> str:
    names: List[str] = []
    for category in entry.categories if entry else ():
        for part in category.split("/"):
            name = part.strip()
            if name and name not in names:
                names.append(name)
    if not names:
        return ""
    links = " ".join(
        f'<a href="{escape(base_url)}/tag/{quote(name, safe="")}">{escape(name)}</a>' for name in names
    )
    return template.replace_tokens(body, {"tag_label_rep": links})


def _substitute_neighbour(html: str, prefix: str, entry: Optional[FeedEntry]) -> str:
    """Fill ``article_prev``/``article_next``, or drop the block without an entry."""
    block = f"article_{prefix}"
    if entry is None:
        return template.remove_block(html, block)
    thumbnail = first_image(entry.body_html)
    if not thumbnail:
        html = template.remove_block(html, f"{block}_thumbnail")
    html = template.replace_tokens(html, {
        f"{block}_link": escape(entry.link),
        f"{block}_title": escape(entry.title),
        f"{block}_date": simple_date(entry.published_at),
        f"{block}_type": _thumb_type(thumbnail),
        f"{block}_thumbnail_link": escape(thumbnail),
    })
    html = template.unwrap_block(html, f"{block}_thumbnail")
    return template.unwrap_block(html, block)


def substitute_article(html: str, ctx: RenderContext) -> str:
    """Fill the displayed post, its admin/tag blocks and prev/next links.

    Prev/next are positional: the second and third feed entries.
    """
    view = ctx.view
    target = ctx.target
    html = template.replace_tokens(html, _article_values(target, view))
    html = template.keep_block(html, "article_rep_thumbnail", bool(target and first_image(target.body_html)))
    html = template.unwrap_block(html, "article_rep")

    html = template.render_block(html, "ad_div", lambda body: _render_admin(body, target, view.base_url))
    html = template.render_block(html, "tag_label", lambda body: _render_tag_label(body, target, view.base_url))

    entries = view.entries
    html = _substitute_neighbour(html, "prev", entries[1] if len(entries) > 1 else None)
    return _substitute_neighbour(html, "next", entries[2] if len(entries) > 2 else None)


# ---------------------------------------------------------------------------
# 6. Paging
# ---------------------------------------------------------------------------

def page_count(entry_count: int, per_page: int = POSTS_PER_PAGE) -> int:
    return math.ceil(entry_count / per_page)


def expand_paging(html: str, ctx: RenderContext) -> str:
    """Page number links plus prev/next page from the platform config."""
    base = escape(ctx.view.base_url)

    def render_page(body: str, number: int) -> str:
        return template.replace_tokens(body, {
            "paging_rep_link": "" if number == 1 else f'href="{base}/page/{number}"',
            "paging_rep_link_num": str(number),
        })

    pages = range(1, page_count(len(ctx.view.entries)) + 1)
    html = template.expand_block(html, "paging_rep", pages, render_page)

    config = ctx.view.scraped.structured_config or {}
    prev_page = str(config.get("PREV_PAGE") or "")
    next_page = str(config.get("NEXT_PAGE") or "")
    html = template.replace_tokens(html, {
        "prev_page": f'href="{escape(prev_page)}"' if prev_page else "",
        "next_page": f'href="{escape(next_page)}"' if next_page else "",
        "no_more_prev": "" if prev_page else "no-more-prev",
        "no_more_next": "" if next_page else "no-more-next",
    })
    return template.unwrap_block(html, "paging")


# ---------------------------------------------------------------------------
# 7. Comments and guestbook
# ---------------------------------------------------------------------------

def _render_discussion(body: str, index: int, comment: RecentComment, prefix: str, reply_block: str) -> str:
    body = template.remove_block(body, reply_block)
    values = {
        f"{prefix}_rep_id": str(index + 1),
        f"{prefix}_rep_name": escape(comment.author_name or DEFAULT_COMMENTER),
        f"{prefix}_rep_desc": escape(comment.text),
        f"{prefix}_rep_date": escape(comment.timestamp),
        f"{prefix}_rep_logo": "",
        f"{prefix}_rep_class": "",
        f"{prefix}_rep_onclick_delete": PREVIEW_ACTION,
        f"{prefix}_rep_onclick_reply": PREVIEW_ACTION,
    }
    if prefix == "rp":
        values["rp_rep_link"] = escape(comment.link)
    return template.replace_tokens(body, values)


def expand_comments(html: str, ctx: RenderContext) -> str:
    """Comments and guestbook entries, both from the recent-comments widget.

    Replies are never shown.
    """
    comments = list(enumerate(ctx.view.scraped.recent_comments[:RECENT_LIMIT]))

    html = template.expand_block(
        html, "rp_rep", comments,
        lambda body, item: _render_discussion(body, item[0], item[1], "rp", "rp2_container"),
    )
    html = template.remove_block(html, "rp2_rep")
    for name in ("rp_container", "rp2_container", "rp"):
        html = template.unwrap_block(html, name)
    html = template.replace_tokens(html, {"comment_group": f'<div id="{COMMENT_ANCHOR}"></div>'})

    html = template.expand_block(
        html, "guest_rep", comments,
        lambda body, item: _render_discussion(body, item[0], item[1], "guest", "guest_reply_container"),
    )
    html = template.remove_block(html, "guest_reply_rep")
    for name in ("guest_container", "guest_reply_container", "guest"):
        html = template.unwrap_block(html, name)
    return html


# ---------------------------------------------------------------------------
# 8. Forms
# ---------------------------------------------------------------------------

FORM_VALUES: Dict[str, str] = {
    "rp_input_name": "name",
    "rp_input_password": "password",
    "rp_input_homepage": "homepage",
    "rp_textarea_body": "body",
    "rp_input_comment": "comment",
    "rp_input_is_secret": "secret",
    "rp_onclick_submit": COMMENT_SUBMIT_ACTION,
    "rp_cnt": "0",
    "guest_input_name": "name",
    "guest_input_password": "password",
    "guest_input_homepage": "homepage",
    "guest_textarea_body": "body",
    "guest_onclick_submit": GUESTBOOK_SUBMIT_ACTION,
    "guest_name": "",
    "guest_password": "",
    "guest_homepage": "",
    "article_rep_rp_cnt": "0",
    "article_rep_rp_link": f"#{COMMENT_ANCHOR}",
    "article_password": "password",
    "article_protected_onclick_submit": PREVIEW_ACTION,
}

FORM_WRAPPERS = (
    "rp_input_form", "guest_input_form", "guest_member", "guest_form",
    "rp_member", "rp_form", "rp_count", "article_protected",
)


def substitute_forms(html: str, ctx: RenderContext) -> str:
    """Fixed field names and submit actions that do nothing in preview."""
    html = template.replace_tokens(html, FORM_VALUES)
    for name in FORM_WRAPPERS:
        html = template.unwrap_block(html, name)
    return html


# ---------------------------------------------------------------------------
# 9. Sweep
# ---------------------------------------------------------------------------

def final_sweep(html: str, ctx: RenderContext) -> str:
    return template.sweep(html)


PIPELINE: Tuple[Stage, ...] = (
    prune_page_blocks,
    inject_head_and_menu,
    substitute_scalars,
    expand_lists,
    substitute_article,
    expand_paging,
    expand_comments,
    substitute_forms,
    final_sweep,
)


def render(skin_html: str, view: ReconciledView, page_type: str = "index",
           entry_id: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Run the stage pipeline over a skin.

    Args:
        skin_html: Raw skin template
        view: Reconciled blog data
        page_type: One of PAGE_TYPES (unknown values get the index body id)
        entry_id: Post to display on post pages
        now: Render time for the calendar (defaults to the current time)

    Returns:
        Hydrated HTML without any placeholder syntax
    """
    ctx = RenderContext(view=view, page_type=page_type, entry_id=entry_id or None,
                        now=now or datetime.now())
    output = skin_html
    for stage in PIPELINE:
        output = stage(output, ctx)
    return output


def error_banner(base_url: str) -> str:
    return ERROR_BANNER.format(base_url=escape(base_url))


async def fetch_blog_data(base_url: str, config: Optional[ServerConfig] = None
                          ) -> Tuple[ParsedFeed, ScrapedData]:
    """Fetch the feed and scrape the blog concurrently.

    The scrape starts first and is cancelled if the feed cannot be loaded.

    Raises:
        FeedUnavailableError: The feed could not be fetched or parsed
    """
    config = config or get_config()
    scrape_task = asyncio.ensure_future(scrape_blog(base_url, config))
    try:
        feed = await parse_feed(base_url, config)
        scraped = await scrape_task
    finally:
        if not scrape_task.done():
            scrape_task.cancel()
    return feed, scraped


async def hydrate(skin_html: str, base_url: str, page_type: str = "index",
                  entry_id: Optional[str] = None, config: Optional[ServerConfig] = None,
                  now: Optional[datetime] = None) -> str:
    """Hydrate a skin with live data from a blog.

    The feed fetch and the page scrape run concurrently. If the feed cannot be
    loaded the untouched skin is returned with an error banner appended.

    Args:
        skin_html: Raw skin template
        base_url: Blog base URL (see resolve_blog_url)
        page_type: index, post, guestbook, tag, category or search
        entry_id: Post id or slug for post pages
        config: Optional configuration
        now: Render time for the calendar

    Returns:
        Hydrated HTML, or the skin plus an error banner
    """
    logger = UnifiedLogger.get_logger(__name__)
    config = config or get_config()
    logger.info(f"Hydrating {page_type} page for {base_url}")

    try:
        feed, scraped = await fetch_blog_data(base_url, config)
    except FeedUnavailableError as e:
        logger.error(f"Hydration aborted: {e}")
        return skin_html + error_banner(base_url)

    view = reconcile(feed, scraped, base_url)
    return render(skin_html, view, page_type, entry_id, now)
