"""Exceptions raised by skin_preview services."""


class SkinPreviewError(Exception):
    """Base class for all skin_preview errors."""


class FeedUnavailableError(SkinPreviewError):
    """The blog's RSS feed could not be fetched or parsed.

    Without the feed nothing can be rendered, so hydration stops and the
    caller shows an error banner instead.
    """

    def __init__(self, base_url: str, reason: str):
        self.base_url = base_url
        self.reason = reason
        super().__init__(f"RSS feed unavailable for {base_url}: {reason}")
