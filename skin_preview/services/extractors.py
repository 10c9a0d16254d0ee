"""Pattern extractors for scraped blog pages.

Blog skins render the same widget (visitor counter, tag cloud, category list)
with very different markup, so each field has an ordered tuple of small
extractor functions. ``first_match`` runs them in order and keeps the first
non-empty result. All matching is plain regular expressions over the raw HTML:
the pages are not ours and are often not well-formed.

Every extractor takes ``(html, base_url)`` and returns None or an empty
collection when it finds nothing. None of them raise on odd markup.
"""

import json
import re
from html import unescape
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import unquote, unquote_plus

from skin_preview.models.schemas import (
    Category,
    ChildCategory,
    Notice,
    RecentComment,
    Tag,
    VisitorCounts,
)


Extractor = Callable[[str, str], Any]


def first_match(extractors: Sequence[Extractor], html: str, base_url: str) -> Any:
    """Run extractors in order and return the first non-empty result."""
    for extractor in extractors:
        result = extractor(html, base_url)
        if result:
            return result
    return None


def absolute_url(href: str, base_url: str) -> str:
    """Resolve a root-relative link against the blog base URL."""
    if href.startswith("/") and not href.startswith("//"):
        return f"{base_url}{href}"
    return href


# ---------------------------------------------------------------------------
# Visitor counters
# ---------------------------------------------------------------------------

_NUMBER = r"([\d,]+)"


def _counts_from(today: Optional[re.Match], yesterday: Optional[re.Match],
                 total: Optional[re.Match]) -> Optional[VisitorCounts]:
    if not (today or yesterday or total):
        return None
    return VisitorCounts(
        today=today.group(1) if today else "0",
        yesterday=yesterday.group(1) if yesterday else "0",
        total=total.group(1) if total else "0",
    )


_COUNTER_BLOCK = re.compile(
    r'<div[^>]*id="counter"[^>]*>[\s\S]*?</div>\s*</div>\s*</div>', re.IGNORECASE
)


def _cnt_div(label: str) -> "re.Pattern[str]":
    return re.compile(
        rf'<div[^>]*class="[^"]*{label}[^"]*"[^>]*>[\s\S]*?'
        rf'<div[^>]*class="[^"]*cnt[^"]*"[^>]*>{_NUMBER}',
        re.IGNORECASE,
    )


_CNT_TODAY, _CNT_YESTERDAY, _CNT_TOTAL = _cnt_div("today"), _cnt_div("yesterday"), _cnt_div("total")


def counter_block_visitors(html: str, base_url: str) -> Optional[VisitorCounts]:
    """``<div id="counter">`` with nested ``today``/``cnt`` divs."""
    block = _COUNTER_BLOCK.search(html)
    if not block:
        return None
    text = block.group(0)
    return _counts_from(_CNT_TODAY.search(text), _CNT_YESTERDAY.search(text), _CNT_TOTAL.search(text))


_VISITOR_BLOCK = re.compile(
    r'<div[^>]*class="[^"]*visitor[^"]*"[\s\S]{0,3000}?</div>\s*</div>\s*</div>'
)


def _classed_number(label: str) -> "re.Pattern[str]":
    return re.compile(rf'class="[^"]*{label}[^"]*"[^>]*>{_NUMBER}', re.IGNORECASE)


_CLASS_TODAY, _CLASS_YESTERDAY, _CLASS_TOTAL = (
    _classed_number("today"), _classed_number("yesterday"), _classed_number("total")
)


def visitor_block_visitors(html: str, base_url: str) -> Optional[VisitorCounts]:
    """A ``visitor`` block holding spans classed today/yesterday/total."""
    block = _VISITOR_BLOCK.search(html)
    if not block:
        return None
    text = block.group(0)
    return _counts_from(_CLASS_TODAY.search(text), _CLASS_YESTERDAY.search(text), _CLASS_TOTAL.search(text))


_COUNT_TODAY = _classed_number(r"(?:count[-_]?today|today[-_]?count)")
_COUNT_YESTERDAY = _classed_number(r"(?:count[-_]?yesterday|yesterday[-_]?count)")
_COUNT_TOTAL = _classed_number(r"(?:count[-_]?total|total[-_]?count)")


def count_class_visitors(html: str, base_url: str) -> Optional[VisitorCounts]:
    """Stand-alone elements classed ``count-today``, ``total_count`` and so on."""
    return _counts_from(_COUNT_TODAY.search(html), _COUNT_YESTERDAY.search(html), _COUNT_TOTAL.search(html))


_WINDOW_T = re.compile(r"window\.T\s*=\s*(\{[\s\S]*?\});")


def window_object_visitors(html: str, base_url: str) -> Optional[VisitorCounts]:
    """Numbers embedded in the ``window.T = {...}`` bootstrap object."""
    match = _WINDOW_T.search(html)
    if not match:
        return None
    text = match.group(1)
    return _counts_from(
        re.search(r'"today"\s*:\s*(\d+)', text),
        re.search(r'"yesterday"\s*:\s*(\d+)', text),
        re.search(r'"total"\s*:\s*(\d+)', text),
    )


_TEXT_TODAY = re.compile(rf">Today\s*[:：]\s*{_NUMBER}", re.IGNORECASE)
_TEXT_YESTERDAY = re.compile(rf">Yesterday\s*[:：]\s*{_NUMBER}", re.IGNORECASE)
_TEXT_TOTAL = re.compile(rf'<p[^>]*class="[^"]*total[^"]*"[^>]*>{_NUMBER}', re.IGNORECASE)


def labelled_text_visitors(html: str, base_url: str) -> Optional[VisitorCounts]:
    """Plain text such as ``<p>Today : 168</p>``."""
    return _counts_from(_TEXT_TODAY.search(html), _TEXT_YESTERDAY.search(html), _TEXT_TOTAL.search(html))


_KO_TODAY = re.compile(rf">오늘\s*[:：]?\s*<[^>]*>{_NUMBER}")
_KO_YESTERDAY = re.compile(rf">어제\s*[:：]?\s*<[^>]*>{_NUMBER}")
_KO_TOTAL = re.compile(rf">전체\s*[:：]?\s*<[^>]*>{_NUMBER}")


def korean_label_visitors(html: str, base_url: str) -> Optional[VisitorCounts]:
    """Korean labels (오늘/어제/전체) followed by a number element."""
    return _counts_from(_KO_TODAY.search(html), _KO_YESTERDAY.search(html), _KO_TOTAL.search(html))


VISITOR_EXTRACTORS: Tuple[Extractor, ...] = (
    counter_block_visitors,
    visitor_block_visitors,
    count_class_visitors,
    window_object_visitors,
    labelled_text_visitors,
    korean_label_visitors,
)


def extract_visitor_counts(html: str, base_url: str = "",
                           extractors: Sequence[Extractor] = VISITOR_EXTRACTORS) -> VisitorCounts:
    """Visitor counts from the first pattern family that finds a total.

    A family that only finds today/yesterday is used when no family finds a
    total at all.
    """
    partial = None
    for extractor in extractors:
        counts = extractor(html, base_url)
        if counts is None:
            continue
        if counts.total != "0":
            return counts
        partial = partial or counts
    return partial or VisitorCounts()


# ---------------------------------------------------------------------------
# Links: tags, notices, comments
# ---------------------------------------------------------------------------

def _anchor_patterns(href: str) -> Tuple["re.Pattern[str]", "re.Pattern[str]"]:
    """Anchors with the label as direct text, then wrapped in an inline element."""
    direct = re.compile(rf'<a\s[^>]*?href="({href})"[^>]*>([^<]+)</a>', re.IGNORECASE)
    wrapped = re.compile(
        rf'<a\s[^>]*?href="({href})"[^>]*>\s*<(span|strong|em|b|p)\b[^>]*>([^<]+)</\2>',
        re.IGNORECASE,
    )
    return direct, wrapped


def _direct_anchors(pattern: "re.Pattern[str]") -> Extractor:
    def extract(html: str, base_url: str) -> List[Tuple[str, str, str]]:
        return [(m.group(0), m.group(1), unescape(m.group(2)).strip()) for m in pattern.finditer(html)
                if m.group(2).strip()]
    return extract


def _wrapped_anchors(pattern: "re.Pattern[str]") -> Extractor:
    def extract(html: str, base_url: str) -> List[Tuple[str, str, str]]:
        return [(m.group(0), m.group(1), unescape(m.group(3)).strip()) for m in pattern.finditer(html)
                if m.group(3).strip()]
    return extract


_TAG_DIRECT, _TAG_WRAPPED = _anchor_patterns(r'[^"]*/tag/[^"]+')
TAG_LINK_EXTRACTORS: Tuple[Extractor, ...] = (
    _direct_anchors(_TAG_DIRECT),
    _wrapped_anchors(_TAG_WRAPPED),
)

_NOTICE_DIRECT, _NOTICE_WRAPPED = _anchor_patterns(r'[^"]*/notice/\d+')
NOTICE_LINK_EXTRACTORS: Tuple[Extractor, ...] = (
    _direct_anchors(_NOTICE_DIRECT),
    _wrapped_anchors(_NOTICE_WRAPPED),
)

_COMMENT_DIRECT, _COMMENT_WRAPPED = _anchor_patterns(r'[^"]*#comment\d+')
COMMENT_LINK_EXTRACTORS: Tuple[Extractor, ...] = (
    _direct_anchors(_COMMENT_DIRECT),
    _wrapped_anchors(_COMMENT_WRAPPED),
)

_CLOUD_CLASS = re.compile(r'class="[^"]*cloud(\d)[^"]*"')


def extract_tags(html: str, base_url: str,
                 extractors: Sequence[Extractor] = TAG_LINK_EXTRACTORS) -> List[Tag]:
    """Tag cloud entries, unique by name, in page order."""
    tags: List[Tag] = []
    seen = set()
    for anchor, href, _label in first_match(extractors, html, base_url) or []:
        raw = href.split("/tag/", 1)[1]
        name = unquote_plus(raw).strip()
        if not name or name in seen:
            continue
        seen.add(name)
        cloud = _CLOUD_CLASS.search(anchor)
        tier = int(cloud.group(1)) if cloud else None
        tags.append(Tag(
            name=name,
            link=f"{base_url}/tag/{raw}",
            popularity_tier=tier if tier and 1 <= tier <= 5 else None,
        ))
    return tags


def extract_notices(html: str, base_url: str,
                    extractors: Sequence[Extractor] = NOTICE_LINK_EXTRACTORS) -> List[Notice]:
    """Notice links, unique by title."""
    notices: List[Notice] = []
    seen = set()
    for _anchor, href, title in first_match(extractors, html, base_url) or []:
        if title in seen:
            continue
        seen.add(title)
        notices.append(Notice(title=title, link=absolute_url(href, base_url)))
    return notices


# Author/date pairs near comments

_AUTHOR_CLASS = re.compile(
    r'<(?:span|a)[^>]*class="[^"]*(?:name|nickname|writer|author)[^"]*"[^>]*>([^<]+)</(?:span|a)>'
)
_DATE_CLASS = re.compile(r'<span[^>]*class="[^"]*date[^"]*"[^>]*>([^<]+)</span>')
_AUTHOR_DOT_DATE = re.compile(r"([^\s·<>]{2,40})·([\d.]+)")


def classed_author_dates(html: str, base_url: str) -> List[Tuple[str, str]]:
    """Names from name/nickname/writer/author elements, dates from date spans."""
    authors = [unescape(m.group(1)).strip() for m in _AUTHOR_CLASS.finditer(html)]
    dates = [unescape(m.group(1)).strip() for m in _DATE_CLASS.finditer(html)]
    length = max(len(authors), len(dates))
    return [
        (authors[i] if i < len(authors) else "", dates[i] if i < len(dates) else "")
        for i in range(length)
    ]


def dotted_author_dates(html: str, base_url: str) -> List[Tuple[str, str]]:
    """``author·2024.01.02`` runs."""
    return [(unescape(m.group(1)), m.group(2)) for m in _AUTHOR_DOT_DATE.finditer(html)]


AUTHOR_DATE_EXTRACTORS: Tuple[Extractor, ...] = (
    classed_author_dates,
    dotted_author_dates,
)


def extract_recent_comments(html: str, base_url: str,
                            extractors: Sequence[Extractor] = COMMENT_LINK_EXTRACTORS,
                            author_extractors: Sequence[Extractor] = AUTHOR_DATE_EXTRACTORS
                            ) -> List[RecentComment]:
    """Recent comments, unique by link, with positional author/date pairing."""
    comments: List[RecentComment] = []
    seen = set()
    for _anchor, href, text in first_match(extractors, html, base_url) or []:
        if href in seen:
            continue
        seen.add(href)
        comments.append(RecentComment(text=text, link=absolute_url(href, base_url)))

    if comments:
        pairs = first_match(author_extractors, html, base_url) or []
        for comment, (author, date) in zip(comments, pairs):
            comment.author_name = author
            comment.timestamp = date
    return comments


# ---------------------------------------------------------------------------
# Platform configuration object
# ---------------------------------------------------------------------------

_CONFIG_PATTERNS = (
    re.compile(r"window\.T\.config\s*=\s*(\{[^;]+\})"),
    re.compile(r"\bT\.config\s*=\s*(\{[^;]+\})"),
)


def _json_config(pattern: "re.Pattern[str]") -> Extractor:
    def extract(html: str, base_url: str) -> Optional[Dict[str, Any]]:
        match = pattern.search(html)
        if not match:
            return None
        try:
            value = json.loads(match.group(1))
        except ValueError:
            return None
        return value if isinstance(value, dict) else None
    return extract


CONFIG_EXTRACTORS: Tuple[Extractor, ...] = tuple(_json_config(p) for p in _CONFIG_PATTERNS)


# ---------------------------------------------------------------------------
# Category hierarchy
# ---------------------------------------------------------------------------

_CATEGORY_ANCHOR = re.compile(
    r'<a\s([^>]*)>\s*([^<]+?)\s*(?:<img[^>]*>\s*)?'
    r'(?:<span[^>]*class="[^"]*c_cnt[^"]*"[^>]*>\s*\(?(\d+)\)?\s*</span>)?\s*(?:<img[^>]*>\s*)?</a>',
    re.IGNORECASE,
)
_HREF_ATTR = re.compile(r'href="([^"]*)"', re.IGNORECASE)
_CLASS_ATTR = re.compile(r'class="([^"]*)"', re.IGNORECASE)


def classed_category_tree(html: str, base_url: str) -> List[Category]:
    """``link_item`` parents followed by their ``link_sub_item`` children.

    Stops at the first repeated parent name: pages often render the same
    list twice (desktop and mobile), and the first pass is complete.
    """
    categories: List[Category] = []
    seen_parents = set()
    current: Optional[Category] = None
    for match in _CATEGORY_ANCHOR.finditer(html):
        attrs = match.group(1)
        href = _HREF_ATTR.search(attrs)
        classes = _CLASS_ATTR.search(attrs)
        if not href or "/category/" not in href.group(1) or not classes:
            continue
        class_names = classes.group(1).split()
        link = absolute_url(href.group(1), base_url)
        name = unescape(match.group(2)).strip()
        count = int(match.group(3)) if match.group(3) else 0

        if "link_item" in class_names:
            if name in seen_parents:
                break
            seen_parents.add(name)
            current = Category(name=name, link=link, post_count=count)
            categories.append(current)
        elif "link_sub_item" in class_names and current is not None:
            current.children.append(ChildCategory(name=name, link=link, post_count=count))
    return categories


_PATH_CATEGORY_ANCHOR = re.compile(
    r'<a[^>]*href="(?:https?://[^"/]+)?(/category/([^"?#]+))"[^>]*>([^<]+)</a>'
)


def path_category_tree(html: str, base_url: str) -> List[Category]:
    """Bare ``/category/Parent/Child`` links, nested by path depth."""
    categories: List[Category] = []
    by_name: Dict[str, Category] = {}
    seen_links = set()
    for match in _PATH_CATEGORY_ANCHOR.finditer(html):
        href, encoded_path = match.group(1), match.group(2)
        if href in seen_links:
            continue
        seen_links.add(href)
        parts = [part.strip() for part in unquote(encoded_path).strip("/").split("/")]
        if not parts or not parts[0]:
            continue

        parent_name = parts[0]
        parent = by_name.get(parent_name)
        if len(parts) == 1:
            if parent is None:
                parent = Category(name=parent_name, link=f"{base_url}{href}")
                by_name[parent_name] = parent
                categories.append(parent)
            continue

        if parent is None:
            parent = Category(
                name=parent_name,
                link=f"{base_url}/category/{encoded_path.split('/', 1)[0]}",
            )
            by_name[parent_name] = parent
            categories.append(parent)
        child_name = "/".join(parts[1:])
        if parent.find_child(child_name) is None:
            parent.children.append(ChildCategory(name=child_name, link=f"{base_url}{href}"))
    return categories


CATEGORY_EXTRACTORS: Tuple[Extractor, ...] = (
    classed_category_tree,
    path_category_tree,
)


# ---------------------------------------------------------------------------
# Navigation menu
# ---------------------------------------------------------------------------

_NAV_LINKS = re.compile(r'<nav[^>]*class="[^"]*nav-links[^"]*"[^>]*>([\s\S]*?)</nav>', re.IGNORECASE)
_MENU_ANCHOR = re.compile(r'<a\s[^>]*href="[^"]*"[^>]*>[^<]*</a>', re.IGNORECASE)
_PLATFORM_MENU_ITEM = re.compile(
    r'<li[^>]*class="[^"]*\bt_menu_[^"]*"[^>]*>\s*(<a\s[^>]*href="[^"]*"[^>]*>[^<]*</a>)',
    re.IGNORECASE,
)


def nav_links_menu(html: str, base_url: str) -> str:
    """Anchors inside ``<nav class="nav-links">`` (admin widgets excluded)."""
    nav = _NAV_LINKS.search(html)
    if not nav:
        return ""
    return " ".join(m.group(0) for m in _MENU_ANCHOR.finditer(nav.group(1)))


def platform_menu(html: str, base_url: str) -> str:
    """Anchors from the platform's own ``t_menu_*`` list items."""
    return " ".join(m.group(1) for m in _PLATFORM_MENU_ITEM.finditer(html))


MENU_EXTRACTORS: Tuple[Extractor, ...] = (
    nav_links_menu,
    platform_menu,
)


# ---------------------------------------------------------------------------
# Platform <head> resources
# ---------------------------------------------------------------------------

_HEAD = re.compile(r"<head[^>]*>([\s\S]*?)</head>", re.IGNORECASE)

_CONFIG_SCRIPT = re.compile(r"<script[^>]*>(?:(?!</script>)[\s\S])*?window\.T\.config\s*=[\s\S]*?</script>", re.IGNORECASE)
_JQUERY_SCRIPT = re.compile(r'<script[^>]*src="[^"]*jquery[^"]*"[^>]*>[\s\S]*?</script>', re.IGNORECASE)
_TJQUERY_SCRIPT = re.compile(r"<script[^>]*>(?:(?!</script>)[\s\S])*?tjQuery[\s\S]*?</script>", re.IGNORECASE)
_PLATFORM_CSS = re.compile(
    r'<link[^>]*href="([^"]*(?:daumcdn|tistory)[^"]*\.css(?:\?[^"]*)?)"[^>]*/?>', re.IGNORECASE
)
_PLATFORM_JS = re.compile(
    r'<script[^>]*src="([^"]*(?:daumcdn|tistory_admin|kakao)[^"]*\.js(?:\?[^"]*)?)"[^>]*>[\s\S]*?</script>',
    re.IGNORECASE,
)
_MODULE_JS = re.compile(
    r'<script[^>]*(?:type="module"|nomodule)[^>]*src="([^"]*(?:daumcdn|tistory)[^"]*\.js[^"]*)"[^>]*>[\s\S]*?</script>',
    re.IGNORECASE,
)
_SOCIAL_META = re.compile(r'<meta\s+(?:property|name)="(?:og|twitter):[^"]*"[^>]*/?>', re.IGNORECASE)
_PLUGIN_BLOCK = re.compile(r"<!-- (\w+) - START -->[\s\S]*?<!-- \1 - END -->", re.IGNORECASE)
_FAVICON = re.compile(r'<link[^>]*rel="(?:icon|apple-touch-icon)"[^>]*/?>', re.IGNORECASE)
_ADSENSE_META = re.compile(r'<meta[^>]*name="google-adsense[^"]*"[^>]*/?>', re.IGNORECASE)
_STRUCTURED_DATA = re.compile(r"<!-- BEGIN STRUCTURED_DATA -->[\s\S]*?<!-- END STRUCTURED_DATA -->", re.IGNORECASE)
_ANOTHER_CATEGORY_STYLE = re.compile(r"<style[^>]*>[\s\S]*?\.another_category[\s\S]*?</style>", re.IGNORECASE)
_CANONICAL = re.compile(r'<link[^>]*rel="canonical"[^>]*/?>', re.IGNORECASE)

# Skin assets are served locally by the preview and must not load twice
SKIN_ASSET_MARKERS = ("/skin/style.css", "/skin/images/", "/skin/script")


def _first(pattern: "re.Pattern[str]") -> Callable[[str], List[str]]:
    def collect(head: str) -> List[str]:
        match = pattern.search(head)
        return [match.group(0)] if match else []
    return collect


def _every(pattern: "re.Pattern[str]") -> Callable[[str], List[str]]:
    def collect(head: str) -> List[str]:
        return [m.group(0) for m in pattern.finditer(head)]
    return collect


def _tjquery_block(head: str) -> List[str]:
    match = _TJQUERY_SCRIPT.search(head)
    if match and "window.T.config" not in match.group(0):
        return [match.group(0)]
    return []


def _platform_css(head: str) -> List[str]:
    return [m.group(0) for m in _PLATFORM_CSS.finditer(head)
            if not any(marker in m.group(1) for marker in SKIN_ASSET_MARKERS)]


def _platform_js(head: str) -> List[str]:
    return [m.group(0) for m in _PLATFORM_JS.finditer(head)
            if not any(marker in m.group(1) for marker in SKIN_ASSET_MARKERS)
            and "jquery" not in m.group(1)]


HEAD_COLLECTORS: Tuple[Callable[[str], List[str]], ...] = (
    _first(_CONFIG_SCRIPT),
    _first(_JQUERY_SCRIPT),
    _tjquery_block,
    _platform_css,
    _platform_js,
    _every(_MODULE_JS),
    _every(_SOCIAL_META),
    _every(_PLUGIN_BLOCK),
    _every(_FAVICON),
    _every(_ADSENSE_META),
    _first(_STRUCTURED_DATA),
    _first(_ANOTHER_CATEGORY_STYLE),
    _first(_CANONICAL),
)


def extract_injected_head(html: str, base_url: str = "") -> str:
    """Platform-injected ``<head>`` resources, newline separated, in a fixed order."""
    head = _HEAD.search(html)
    if not head:
        return ""
    lines: List[str] = []
    for collect in HEAD_COLLECTORS:
        lines.extend(collect(head.group(1)))
    return "\n".join(lines)
