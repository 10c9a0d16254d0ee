"""skin_preview - preview blog skins against live RSS and scraped blog data."""

__version__ = "0.1.0"
