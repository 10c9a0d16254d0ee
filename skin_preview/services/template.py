"""Skin template primitives.

A skin holds two kinds of placeholders:

* tokens, ``[##_name_##]``, each replaced by one string;
* blocks, ``<s_name>...</s_name>``, which are removed, unwrapped (markers
  dropped, content kept) or expanded once per item of a list.

All functions return new strings; templates are never modified in place.
"""

import re
from typing import Callable, Iterable, Mapping, TypeVar


T = TypeVar("T")

_TOKEN = re.compile(r"\[##_([A-Za-z0-9_]+?)_##\]")
_ANY_TOKEN = re.compile(r"\[##_.*?_##\]")
_ANY_MARKER = re.compile(r"</?s_[^<>]*>")

_block_cache = {}


def token(name: str) -> str:
    """The placeholder text for a token name."""
    return f"[##_{name}_##]"


def block_pattern(name: str) -> "re.Pattern[str]":
    """Pattern for a whole ``<s_name>...</s_name>`` block; group 1 is the body."""
    pattern = _block_cache.get(name)
    if pattern is None:
        pattern = re.compile(rf"<s_{name}>([\s\S]*?)</s_{name}>")
        _block_cache[name] = pattern
    return pattern


def replace_tokens(html: str, values: Mapping[str, str]) -> str:
    """Replace the tokens named in ``values``; other tokens are left alone.

    Replacement happens in one pass, so values are never rescanned.
    """
    if not values:
        return html

    def substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        return values[name] if name in values else match.group(0)

    return _TOKEN.sub(substitute, html)


def remove_block(html: str, name: str) -> str:
    """Drop every ``name`` block, markers and content."""
    return block_pattern(name).sub("", html)


def unwrap_block(html: str, name: str) -> str:
    """Drop the ``name`` markers and keep what is between them."""
    return re.sub(rf"</?s_{name}>", "", html)


def keep_block(html: str, name: str, keep: bool) -> str:
    """Unwrap the block when ``keep`` is true, otherwise remove it."""
    return unwrap_block(html, name) if keep else remove_block(html, name)


def render_block(html: str, name: str, render: Callable[[str], str]) -> str:
    """Replace each ``name`` block by ``render(body)``."""
    return block_pattern(name).sub(lambda match: render(match.group(1)), html)


def expand_block(html: str, name: str, items: Iterable[T],
                 render_item: Callable[[str, T], str]) -> str:
    """Repeat each ``name`` block's body once per item.

    An empty ``items`` renders the block as an empty string.
    """
    items = list(items)
    return render_block(html, name, lambda body: "".join(render_item(body, item) for item in items))


def sweep(html: str) -> str:
    """Remove every remaining token and block marker.

    Runs to a fixed point, so removing one placeholder can never leave a new
    one behind and ``sweep(sweep(x)) == sweep(x)``.
    """
    while True:
        cleaned = _ANY_MARKER.sub("", _ANY_TOKEN.sub("", html))
        if cleaned == html:
            return cleaned
        html = cleaned


def has_placeholders(html: str) -> bool:
    """True if any token or block marker is left in ``html``."""
    return bool(_ANY_TOKEN.search(html) or _ANY_MARKER.search(html))
