"""Unit tests for skin hydration."""

import asyncio
import re
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from skin_preview.errors import FeedUnavailableError
from skin_preview.models.schemas import (
    FeedChannel,
    FeedEntry,
    Notice,
    ParsedFeed,
    RecentComment,
    ScrapedData,
    VisitorCounts,
)
from skin_preview.services import template
from skin_preview.services.hydrator import (
    error_banner,
    fetch_blog_data,
    find_entry,
    hydrate,
    page_count,
    related_entries,
    render,
)
from skin_preview.services.reconciler import reconcile
from skin_preview.services.scraper import extract_scraped_data


# Mark all tests as async
pytestmark = pytest.mark.anyio


BASE = "https://myblog.tistory.com"
NOW = datetime(2024, 1, 20, 9, 0)

SKIN = """<!doctype html>
<html>
<head>
<title>[##_page_title_##]</title>
[##_tistory_head_##]
</head>
<body id="[##_body_id_##]">
<header><h1><a href="[##_blog_link_##]">[##_title_##]</a></h1><p>[##_desc_##]</p></header>
<nav>[##_blog_menu_##]</nav>
<s_sidebar>
  <s_sidebar_element>
    <div class="counter">
      <span class="today">[##_count_today_##]</span>
      <span class="yesterday">[##_count_yesterday_##]</span>
      <span class="total">[##_count_total_##]</span>
    </div>
  </s_sidebar_element>
  <s_sidebar_element>[##_category_list_##]</s_sidebar_element>
  <s_sidebar_element>
    <s_notice><ul><s_notice_rep><li><a href="[##_notice_rep_link_##]">[##_notice_rep_title_##]</a></li></s_notice_rep></ul></s_notice>
  </s_sidebar_element>
  <s_sidebar_element>
    <s_rctps><ul><s_rctps_rep><li class="recent"><a href="[##_rctps_rep_link_##]">[##_rctps_rep_title_##]</a></li></s_rctps_rep></ul></s_rctps>
  </s_sidebar_element>
  <s_sidebar_element>
    <s_rctrp><ul><s_rctrp_rep><li class="rc">[##_rctrp_rep_name_##]: [##_rctrp_rep_desc_##]</li></s_rctrp_rep></ul></s_rctrp>
  </s_sidebar_element>
  <s_sidebar_element><s_tag_rep><a href="[##_tag_link_##]" class="[##_tag_class_##]">[##_tag_name_##]</a></s_tag_rep></s_sidebar_element>
  <s_sidebar_element>[##_calendar_##]<ul>[##_archive_##]</ul></s_sidebar_element>
</s_sidebar>
<main>
<s_list>
  <h2>[##_list_conform_##] ([##_list_count_##])</h2>
  <s_list_empty><p class="empty">No posts</p></s_list_empty>
  <s_list_rep>
    <article class="item">
      <s_list_rep_thumbnail><img class="thumb" src="[##_list_rep_thumbnail_##]"></s_list_rep_thumbnail>
      <a href="[##_list_rep_link_##]">[##_list_rep_title_##]</a>
      <span class="date">[##_list_rep_regdate_##]</span>
      <span class="cat" style="color:[##_list_rep_category_color_##]">[##_list_rep_category_##]</span>
      <p>[##_list_rep_summary_##]</p>
    </article>
  </s_list_rep>
</s_list>
<s_article_rep>
  <article class="detail">
    <h2 class="detail-title">[##_article_rep_title_##]</h2>
    <span class="detail-date">[##_article_rep_date_##]</span>
    <div class="body">[##_article_rep_desc_##]</div>
    <s_tag_label><div class="tags">[##_tag_label_rep_##]</div></s_tag_label>
    <s_ad_div><a href="[##_s_ad_m_link_##]">edit</a></s_ad_div>
    <s_article_prev><a class="prev" href="[##_article_prev_link_##]">[##_article_prev_title_##]</a></s_article_prev>
    <s_article_next><a class="next" href="[##_article_next_link_##]">[##_article_next_title_##]</a></s_article_next>
    <s_article_related><ul><s_article_related_rep><li class="related"><a href="[##_article_related_rep_link_##]">[##_article_related_rep_title_##]</a></li></s_article_related_rep></ul></s_article_related>
  </article>
  <s_rp>
    <s_rp_container><ol><s_rp_rep><li class="comment">[##_rp_rep_id_##] [##_rp_rep_name_##] [##_rp_rep_desc_##]<s_rp2_container><s_rp2_rep>reply</s_rp2_rep></s_rp2_container></li></s_rp_rep></ol></s_rp_container>
    [##_comment_group_##]
    <s_rp_input_form><input name="[##_rp_input_name_##]"><button onclick="[##_rp_onclick_submit_##]">go</button></s_rp_input_form>
  </s_rp>
</s_article_rep>
<s_guest>
  <s_guest_container><s_guest_rep><div class="guest">[##_guest_rep_name_##]</div></s_guest_rep></s_guest_container>
</s_guest>
<s_paging>
  <a [##_prev_page_##] class="prev [##_no_more_prev_##]">prev</a>
  <s_paging_rep><a [##_paging_rep_link_##] class="num">[##_paging_rep_link_num_##]</a></s_paging_rep>
  <a [##_next_page_##] class="next [##_no_more_next_##]">next</a>
</s_paging>
</main>
<footer>[##_blogger_##] [##_unknown_token_##]</footer>
</body>
</html>
"""


def _entry(number, categories=("Dev/Python",), body=None):
    return FeedEntry(
        title=f"Post {number}",
        link=f"{BASE}/{number}",
        published_at=datetime(2024, 1, number, 10, 30),
        categories=tuple(categories),
        author="kim",
        body_html=body if body is not None else f"<p>Body of post {number}</p>",
    )


ENTRIES = (
    _entry(5, body='<p>Fifth <img src="https://img.example.com/5.png"></p>'),
    _entry(4),
    _entry(3, categories=("Life",)),
    _entry(2),
    _entry(1, categories=()),
)


def _scraped():
    return ScrapedData(
        visitor_counts=VisitorCounts(today="12", yesterday="34", total="5000"),
        notices=[Notice(title="Welcome", link=f"{BASE}/notice/1")],
        recent_comments=[
            RecentComment(text="Nice post", link=f"{BASE}/5#comment1", author_name="lee", timestamp="2024.01.06"),
            RecentComment(text="Thanks", link=f"{BASE}/4#comment2"),
        ],
        structured_config={"BLOG": {"title": "My Blog"}, "NEXT_PAGE": "/page/2"},
    )


def _feed(entries=ENTRIES):
    return ParsedFeed(
        channel=FeedChannel(title="My Blog", description="Notes & things"),
        entries=tuple(entries),
    )


def _view(entries=ENTRIES, scraped=None):
    return reconcile(_feed(entries), scraped or _scraped(), BASE)


def _texts(html, css_class):
    return re.findall(rf'class="{css_class}"[^>]*>([^<]*)<', html)


class TestRender:
    """Tests for the render pipeline."""

    def test_full_index_page(self):
        """Test an index page with every data source available."""
        html = render(SKIN, _view(), "index", now=NOW)

        assert not template.has_placeholders(html)
        assert _texts(html, "today") == ["12"]
        assert _texts(html, "yesterday") == ["34"]
        assert _texts(html, "total") == ["5000"]
        assert 'id="tt-body-index"' in html
        assert "<title>My Blog</title>" in html
        assert "Notes &amp; things" in html
        assert html.count('class="item"') == 5
        assert html.count('class="recent"') == 5
        assert html.count('class="rc"') == 2
        assert "lee: Nice post" in html
        assert "방문자: Thanks" in html
        assert ">Welcome</a>" in html
        assert "window.T.config" in html
        assert '<p class="empty">' not in html
        assert 'class="guest"' not in html

    def test_scraped_entities_escaped_once(self):
        """Test entity-encoded page text is displayed once-escaped."""
        page = (
            '<a href="/notice/1">Q&amp;A 안내</a>'
            '<a href="/3#comment12">좋아요 &lt;3</a>'
            '<a href="/category/CPP" class="link_item">C&amp;C++ <span class="c_cnt">(3)</span></a>'
        )
        view = _view(scraped=extract_scraped_data(page, BASE))
        html = render(SKIN, view, "index", now=NOW)

        assert ">Q&amp;A 안내</a>" in html
        assert "방문자: 좋아요 &lt;3" in html
        assert "C&amp;C++" in html
        assert "&amp;amp;" not in html
        assert "&amp;lt;" not in html

    def test_list_item_fields(self):
        """Test summary, date, category colour and thumbnail of list items."""
        view = _view()
        html = render(SKIN, view, "index", now=NOW)

        assert html.count('class="thumb"') == 1
        assert 'src="https://img.example.com/5.png"' in html
        assert "2024.01.05" in html
        assert "<p>Body of post 4...</p>" in html
        assert f'style="color:{view.category_colors["Dev"]}">Dev/Python<' in html
        assert ">전체</span>" in html

    def test_post_page_with_entry_id(self):
        """Test a post page showing the requested entry."""
        html = render(SKIN, _view(), "post", entry_id="3", now=NOW)

        assert 'id="tt-body-page"' in html
        assert _texts(html, "detail-title") == ["Post 3"]
        assert "2024. 1. 3. 10:30" in html
        assert f'{BASE}/tag/Life">Life</a>' in html
        assert f"{BASE}/manage/newpost/3" in html
        assert not template.has_placeholders(html)

    def test_missing_entry_falls_back_to_first(self):
        """Test that an unknown entry id renders the first entry."""
        html = render(SKIN, _view(), "post", entry_id="does-not-exist", now=NOW)

        assert _texts(html, "detail-title") == ["Post 5"]
        assert '<img src="https://img.example.com/5.png">' in html

    def test_prev_next_are_positional(self):
        """Test prev/next links use the second and third entries."""
        html = render(SKIN, _view(), "post", now=NOW)

        assert _texts(html, "prev") == ["Post 4"]
        assert f'class="next" href="{BASE}/3">Post 3<' in html

    def test_prev_next_removed_without_entries(self):
        """Test neighbour blocks disappear when there are not enough entries."""
        html = render(SKIN, _view(entries=ENTRIES[:1]), "post", now=NOW)

        assert 'class="prev" href' not in html
        assert 'class="next" href' not in html
        assert not template.has_placeholders(html)

    def test_related_posts(self):
        """Test related posts share the displayed entry's category."""
        html = render(SKIN, _view(), "post", now=NOW)
        assert html.count('class="related"') == 2

    def test_comments_without_replies(self):
        """Test comment expansion, ids and reply removal."""
        html = render(SKIN, _view(), "post", now=NOW)

        assert html.count('class="comment"') == 2
        assert "1 lee Nice post" in html
        assert "2 방문자 Thanks" in html
        assert "reply" not in html
        assert '<div id="tt-comment-area"></div>' in html
        assert 'name="name"' in html
        assert "alert(" in html

    def test_zero_entries(self):
        """Test a feed with no entries renders empty lists, not markers."""
        html = render(SKIN, _view(entries=(), scraped=ScrapedData()), "index", now=NOW)

        assert not template.has_placeholders(html)
        assert '<p class="empty">No posts</p>' in html
        assert 'class="item"' not in html
        assert 'class="recent"' not in html
        assert 'class="num"' not in html
        assert "<s_" not in html

    def test_post_page_without_entries(self):
        """Test blog values stand in for a missing post."""
        html = render(SKIN, _view(entries=(), scraped=ScrapedData()), "post", now=NOW)

        assert _texts(html, "detail-title") == ["My Blog"]
        assert not template.has_placeholders(html)

    def test_guestbook_prunes_post_blocks(self):
        """Test page-type pruning for the guestbook."""
        html = render(SKIN, _view(), "guestbook", now=NOW)

        assert 'id="tt-body-guestbook"' in html
        assert 'class="item"' not in html
        assert 'class="detail"' not in html
        assert html.count('class="guest"') == 2

    def test_index_prunes_guestbook(self):
        """Test the guestbook block only renders on guestbook pages."""
        html = render(SKIN, _view(), "index", now=NOW)
        assert 'class="guest"' not in html

    def test_paging(self):
        """Test page links and prev/next page from the platform config."""
        entries = tuple(_entry(day) for day in range(1, 24))
        html = render(SKIN, _view(entries=entries), "index", now=NOW)

        assert _texts(html, "num") == ["1", "2", "3"]
        assert f'href="{BASE}/page/2"' in html
        assert 'href="/page/2" class="next "' in html
        assert 'class="prev no-more-prev"' in html

    def test_calendar_marks_post_days(self):
        """Test calendar days with posts and today."""
        html = render(SKIN, _view(), "index", now=NOW)
        assert "January 2024" in html
        assert 'class="cal-has-post"><a' in html
        assert 'class="cal-today"' in html
        assert f'{BASE}/archive/202401' in html

    def test_escapes_text(self):
        """Test that titles are HTML-escaped."""
        entries = (FeedEntry(title="<b>x</b> & y", link=f"{BASE}/1", published_at=None),)
        html = render(SKIN, _view(entries=entries), "index", now=NOW)
        assert "&lt;b&gt;x&lt;/b&gt; &amp; y" in html

    def test_no_placeholders_on_any_page(self):
        """Test every page type leaves no placeholder syntax."""
        for page_type in ("index", "post", "guestbook", "tag", "category", "search"):
            html = render(SKIN, _view(), page_type, now=NOW)
            assert not template.has_placeholders(html), page_type


class TestHelpers:
    """Tests for hydrator helpers."""

    def test_page_count(self):
        """Test ceil(n / 10)."""
        assert page_count(0) == 0
        assert page_count(1) == 1
        assert page_count(10) == 1
        assert page_count(11) == 2

    def test_find_entry_by_slug(self):
        """Test /entry/ slugs, including encoded ones."""
        entries = (
            FeedEntry(title="a", link=f"{BASE}/entry/hello-world", published_at=None),
            FeedEntry(title="b", link=f"{BASE}/entry/%ED%95%9C%EA%B8%80", published_at=None),
        )
        assert find_entry(entries, "hello-world").title == "a"
        assert find_entry(entries, "한글").title == "b"
        assert find_entry(entries, None).title == "a"
        assert find_entry((), "x") is None

    def test_related_entries_fallback(self):
        """Test related entries fall back to other entries."""
        related = related_entries(ENTRIES, ENTRIES[2])
        assert [e.title for e in related] == ["Post 5", "Post 4", "Post 2", "Post 1"]

    def test_error_banner(self):
        """Test the banner text."""
        assert "Failed to load RSS: https://x.tistory.com" in error_banner("https://x.tistory.com")


class TestHydrate:
    """Tests for the async hydrate entry point."""

    async def test_full_success(self):
        """Test feed and scrape results flow into the output."""
        with patch("skin_preview.services.hydrator.parse_feed", AsyncMock(return_value=_feed())), \
                patch("skin_preview.services.hydrator.scrape_blog", AsyncMock(return_value=_scraped())):
            html = await hydrate(SKIN, BASE, "index", now=NOW)

        assert "12" in html and "34" in html and "5000" in html
        assert not template.has_placeholders(html)

    async def test_feed_down_returns_template_with_banner(self):
        """Test that a feed failure returns the raw skin plus an error banner."""
        failing = AsyncMock(side_effect=FeedUnavailableError(BASE, "Connection failed"))
        with patch("skin_preview.services.hydrator.parse_feed", failing), \
                patch("skin_preview.services.hydrator.scrape_blog", AsyncMock(return_value=ScrapedData())):
            html = await hydrate(SKIN, BASE, "index", now=NOW)

        assert html.startswith(SKIN)
        assert html == SKIN + error_banner(BASE)
        assert f"Failed to load RSS: {BASE}" in html

    async def test_scrape_failure_still_renders(self):
        """Test that an empty scrape result still hydrates from the feed."""
        with patch("skin_preview.services.hydrator.parse_feed", AsyncMock(return_value=_feed())), \
                patch("skin_preview.services.hydrator.scrape_blog", AsyncMock(return_value=ScrapedData())):
            html = await hydrate(SKIN, BASE, "index", now=NOW)

        assert _texts(html, "total") == ["0"]
        assert html.count('class="item"') == 5
        assert not template.has_placeholders(html)

    async def test_feed_and_scrape_run_concurrently(self):
        """Test that the scrape runs while the feed is still loading."""
        order = []

        async def feed(base_url, config):
            order.append("feed started")
            await asyncio.sleep(0)
            order.append("feed finished")
            return _feed()

        async def scrape(base_url, config):
            order.append("scrape started")
            return _scraped()

        with patch("skin_preview.services.hydrator.parse_feed", feed), \
                patch("skin_preview.services.hydrator.scrape_blog", scrape):
            feed_data, scraped = await fetch_blog_data(BASE)

        assert order.index("scrape started") < order.index("feed finished")
        assert len(feed_data.entries) == 5
        assert scraped.visitor_counts.total == "5000"

    async def test_feed_failure_cancels_scrape(self):
        """Test a pending scrape is cancelled when the feed fails."""
        cancelled = asyncio.Event()

        async def feed(base_url, config):
            await asyncio.sleep(0)
            raise FeedUnavailableError(base_url, "404")

        async def scrape(base_url, config):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return ScrapedData()

        with patch("skin_preview.services.hydrator.parse_feed", feed), \
                patch("skin_preview.services.hydrator.scrape_blog", scrape):
            with pytest.raises(FeedUnavailableError):
                await fetch_blog_data(BASE)
            await asyncio.wait_for(cancelled.wait(), 1)

        assert cancelled.is_set()
