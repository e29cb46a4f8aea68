class FeedError(Exception):
    """Base class for errors raised by the feed and its API client."""


class NetworkError(FeedError):
    """A catalogue, search or action request failed."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


class NotFoundError(FeedError):
    """The requested video is not part of the loaded list."""
