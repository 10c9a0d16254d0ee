"""Services for skin_preview."""

from .resolver import resolve_blog_url
from .feed_parser import parse_feed, parse_feed_text
from .scraper import scrape_blog, extract_scraped_data
from .reconciler import reconcile
from .hydrator import hydrate, render

__all__ = [
    "resolve_blog_url",
    "parse_feed",
    "parse_feed_text",
    "scrape_blog",
    "extract_scraped_data",
    "reconcile",
    "hydrate",
    "render",
]
