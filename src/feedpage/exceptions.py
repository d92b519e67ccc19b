"""Error types raised inside a refresh cycle."""


class FeedPageError(Exception):
    """Base class for FeedPage errors."""


class TransportError(FeedPageError):
    """A feed, OPML document or article page could not be reached."""


class ParseError(FeedPageError):
    """A feed or OPML document could not be parsed."""


class ExtractionError(FeedPageError):
    """No article body could be extracted from a rendered page."""


class CycleError(FeedPageError):
    """A refresh cycle failed before its digest could be published."""

    def __init__(self, message: str, stage: str = "cycle"):
        super().__init__(message)
        self.stage = stage
