"""Category colours.

Each top-level category gets the next colour from a fixed palette (cycling);
its children share the parent's colour so a post shows the same colour in
the menu, the post list and the post view.
"""

from typing import Dict, Iterable, Tuple

from skin_preview.models.schemas import Category


# GitHub-style language colours
CATEGORY_PALETTE: Tuple[str, ...] = (
    "#3572A5", "#e34c26", "#f1e05a", "#563d7c", "#2b7489",
    "#b07219", "#4F5D95", "#00ADD8", "#DA5B0B", "#178600",
    "#89e051", "#438eff", "#A97BFF", "#e44b23", "#f34b7d", "#00B4AB",
)


def assign_category_colors(categories: Iterable[Category],
                           palette: Tuple[str, ...] = CATEGORY_PALETTE) -> Dict[str, str]:
    """Map category keys to colours.

    Keys are the parent name, each child name and the ``Parent/Child``
    composite. Parent names win over bare child names; a child name shared
    by two parents keeps the first colour.

    Args:
        categories: Top-level categories in display order
        palette: Colours to cycle through

    Returns:
        Dict of category key to hex colour
    """
    colors: Dict[str, str] = {}
    for index, category in enumerate(categories):
        color = palette[index % len(palette)]
        colors[category.name] = color
        for child in category.children:
            colors[f"{category.name}/{child.name}"] = color
            colors.setdefault(child.name, color)
    return colors


def color_for(colors: Dict[str, str], category_key: str, default: str = "") -> str:
    """Colour for a category key, trying the parent of a ``Parent/Child`` key."""
    if category_key in colors:
        return colors[category_key]
    parent = category_key.split("/", 1)[0].strip()
    return colors.get(parent, default)
