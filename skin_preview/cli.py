"""Command line rendering of a skin against a live blog.

    skin-preview skin.html --target myblog --page post --entry 123 -o out.html
"""

import asyncio
import sys

import click

from skin_preview.config import get_config
from skin_preview.log_system.unified_logger import UnifiedLogger
from skin_preview.services.hydrator import PAGE_TYPES, hydrate
from skin_preview.services.resolver import resolve_blog_url


@click.command()
@click.argument("skin_file", type=click.File("r", encoding="utf-8"))
@click.option(
    "--target",
    default="",
    help="Blog id or URL (defaults to TARGET_BLOG_URL or the notice blog)"
)
@click.option(
    "--page",
    "page_type",
    type=click.Choice(PAGE_TYPES),
    default="index",
    help="Page type to render"
)
@click.option(
    "--entry",
    "entry_id",
    default="",
    help="Post id or slug for post pages (defaults to the latest post)"
)
@click.option(
    "--output",
    "-o",
    type=click.File("w", encoding="utf-8"),
    default="-",
    help="Write the hydrated HTML here instead of stdout"
)
def render(skin_file, target: str, page_type: str, entry_id: str, output) -> None:
    """Hydrate SKIN_FILE with data from a blog and print the HTML."""
    config = get_config()
    UnifiedLogger.initialize(config)
    logger = UnifiedLogger.get_logger(__name__)

    base_url = resolve_blog_url(target or config.default_target)
    logger.info(f"Rendering {skin_file.name} as {page_type} page of {base_url}")

    html = asyncio.run(hydrate(skin_file.read(), base_url, page_type, entry_id or None, config))
    output.write(html)


if __name__ == "__main__":
    sys.exit(render())
