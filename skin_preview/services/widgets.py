"""HTML fragments the platform would normally render server-side.

The category tree, blog menu, calendar, archive list and the fallback
``<head>`` resources are produced here from the reconciled view.
"""

import calendar
import json
from datetime import datetime
from typing import List

from skin_preview.models.schemas import Category, ReconciledView
from skin_preview.services.colors import color_for
from skin_preview.services.formatting import escape


PLATFORM_URL = "https://www.tistory.com"

FALLBACK_HEAD_RESOURCES = (
    '<script src="//t1.daumcdn.net/tistory_admin/lib/jquery/jquery-3.5.1.min.js"></script>',
    '<link rel="stylesheet" href="https://tistory1.daumcdn.net/tistory_admin/userblog/'
    'userblog-cc5df8d167f071ef0aa6b0df09772f80c0161cd0/static/style/content.css"/>',
    '<link rel="stylesheet" href="https://tistory1.daumcdn.net/tistory_admin/userblog/'
    'userblog-cc5df8d167f071ef0aa6b0df09772f80c0161cd0/static/style/tistory.css"/>',
)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
WEEKDAY_HEADERS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def _script_json(value: dict) -> str:
    """JSON safe to embed inside a ``<script>`` element."""
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def fallback_head(view: ReconciledView) -> str:
    """Minimal platform bootstrap used when the live ``<head>`` was not scraped."""
    config = view.scraped.structured_config or {}
    t_config = {
        "TOP_SSL_URL": PLATFORM_URL,
        "PREVIEW": True,
        "ROLE": "guest",
        "PREV_PAGE": config.get("PREV_PAGE", "") if isinstance(config, dict) else "",
        "NEXT_PAGE": config.get("NEXT_PAGE", "") if isinstance(config, dict) else "",
        "BLOG": {
            "name": view.blog_name,
            "title": view.title,
            "isDormancy": False,
            "nickName": view.display_name,
        },
        "IS_LOGIN": False,
        "HAS_BLOG": False,
    }
    tistory_blog = {
        "basePath": "",
        "url": view.base_url,
        "tistoryUrl": view.base_url,
        "manageUrl": f"{view.base_url}/manage",
    }
    lines = [
        "<script>if(!window.T){window.T={}}",
        f"window.T.config={_script_json(t_config)};",
        f"window.TistoryBlog={_script_json(tistory_blog)};",
        "</script>",
    ]
    lines.extend(FALLBACK_HEAD_RESOURCES)
    return "\n".join(lines)


def fallback_menu(view: ReconciledView) -> str:
    """Home link plus one link per top-level category."""
    links = [f'<a href="{escape(view.base_url)}">Home</a>']
    for category in view.categories:
        links.append(f'<a href="{escape(category.link)}">{escape(category.name)}</a>')
    return " ".join(links)


def _count_badge(count: int) -> str:
    return f'<span class="c_cnt">{count}</span>'


def _category_item(category: Category, color: str) -> str:
    dot = f'<span class="cat-dot" style="background:{color}"></span>'
    anchor = (
        f'<a href="{escape(category.link)}">{dot}{escape(category.name)}'
        f"{_count_badge(category.post_count)}</a>"
    )
    if not category.children:
        return f"<li>{anchor}</li>"
    children = "".join(
        f'<li><a href="{escape(child.link)}">{escape(child.name)}{_count_badge(child.post_count)}</a></li>'
        for child in category.children
    )
    return f'<li class="cat-parent">{anchor}<ul>{children}</ul></li>'


def category_list(view: ReconciledView) -> str:
    """Nested category list with colour dots and post counts."""
    items = "".join(
        _category_item(category, color_for(view.category_colors, category.name))
        for category in view.categories
    )
    return f"<ul>{items}</ul>"


def calendar_table(view: ReconciledView, now: datetime) -> str:
    """This month's calendar; days with posts are linked."""
    year, month = now.year, now.month
    first_weekday, days_in_month = calendar.monthrange(year, month)
    # monthrange counts from Monday; the table starts on Sunday
    leading = (first_weekday + 1) % 7
    post_days = {
        entry.published_at.day
        for entry in view.entries
        if entry.published_at and entry.published_at.year == year and entry.published_at.month == month
    }

    parts: List[str] = [
        f"<table><caption>« {MONTH_NAMES[month - 1]} {year} »</caption>",
        "<tr>" + "".join(f"<th>{day}</th>" for day in WEEKDAY_HEADERS) + "</tr><tr>",
        "<td></td>" * leading,
    ]
    for day in range(1, days_in_month + 1):
        classes = []
        if day == now.day:
            classes.append("cal-today")
        if day in post_days:
            classes.append("cal-has-post")
        cls = f' class="{" ".join(classes)}"' if classes else ""
        if day in post_days:
            parts.append(f'<td{cls}><a href="{escape(view.base_url)}">{day}</a></td>')
        else:
            parts.append(f"<td{cls}>{day}</td>")
        if (leading + day) % 7 == 0 and day < days_in_month:
            parts.append("</tr><tr>")
    parts.append("</tr></table>")
    return "".join(parts)


def archive_list(view: ReconciledView) -> str:
    """One list item per month with posts, newest first."""
    months = sorted(
        {f"{entry.published_at.year}/{entry.published_at.month:02d}"
         for entry in view.entries if entry.published_at},
        reverse=True,
    )
    return "".join(
        f'<li><a href="{escape(view.base_url)}/archive/{month.replace("/", "")}">{month}</a></li>'
        for month in months
    )
