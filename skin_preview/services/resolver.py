"""Blog identifier resolution.

Turns whatever the user typed (a bare blog id or a full URL) into the base URL
every other service works from. No network access happens here.
"""

import re


PLATFORM_DOMAIN = "tistory.com"
DEFAULT_BLOG_URL = f"https://notice.{PLATFORM_DOMAIN}"

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


def resolve_blog_url(url_or_id: str) -> str:
    """Resolve a blog identifier or URL to a base URL without trailing slash.

    - ``""`` or ``"notice"`` -> https://notice.tistory.com
    - ``https://myblog.tistory.com/`` -> https://myblog.tistory.com
    - ``https://custom-domain.com/`` -> https://custom-domain.com
    - ``myblog`` -> https://myblog.tistory.com

    Args:
        url_or_id: Blog identifier or absolute URL (may be empty)

    Returns:
        Base URL of the blog
    """
    value = url_or_id or ""
    if not value or value == "notice":
        return DEFAULT_BLOG_URL

    if _ABSOLUTE_URL.match(value):
        return value.rstrip("/")

    return f"https://{value}.{PLATFORM_DOMAIN}"
