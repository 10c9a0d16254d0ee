"""Text and date formatting for hydrated output."""

import html
import re
from datetime import datetime
from typing import Dict, Optional

from bs4 import BeautifulSoup


SUMMARY_LENGTH = 150
SUMMARY_SUFFIX = "..."

_WHITESPACE = re.compile(r"\s+")


def escape(value: Optional[str]) -> str:
    """HTML-escape text for element content and quoted attributes."""
    return html.escape(value or "", quote=True)


def plain_text(body_html: str) -> str:
    """Visible text of an HTML fragment with whitespace collapsed."""
    if not body_html:
        return ""
    text = BeautifulSoup(body_html, "lxml").get_text(" ")
    return _WHITESPACE.sub(" ", text).strip()


def summarize(body_html: str, length: int = SUMMARY_LENGTH) -> str:
    """First ``length`` characters of the body text plus an ellipsis, escaped."""
    return escape(plain_text(body_html)[:length]) + SUMMARY_SUFFIX


def first_image(body_html: str) -> str:
    """``src`` of the first image in an HTML fragment, or ``""``."""
    if not body_html or "<img" not in body_html.lower():
        return ""
    img = BeautifulSoup(body_html, "lxml").find("img", src=True)
    return img["src"].strip() if img else ""


def date_parts(value: Optional[datetime]) -> Dict[str, str]:
    """Zero-padded year/month/day/hour/minute/second (empty when unknown)."""
    if value is None:
        return {key: "" for key in ("year", "month", "day", "hour", "minute", "second")}
    return {
        "year": str(value.year),
        "month": f"{value.month:02d}",
        "day": f"{value.day:02d}",
        "hour": f"{value.hour:02d}",
        "minute": f"{value.minute:02d}",
        "second": f"{value.second:02d}",
    }


def list_date(value: Optional[datetime]) -> str:
    """``2024.01.05`` as used in post lists."""
    return value.strftime("%Y.%m.%d") if value else ""


def full_date(value: Optional[datetime]) -> str:
    """``2024. 1. 5. 09:30`` as used on the post page."""
    if value is None:
        return ""
    return f"{value.year}. {value.month}. {value.day}. {value.hour:02d}:{value.minute:02d}"


def simple_date(value: Optional[datetime]) -> str:
    """``2024. 1. 5.``"""
    if value is None:
        return ""
    return f"{value.year}. {value.month}. {value.day}."
