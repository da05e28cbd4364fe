from __future__ import annotations


class DropWatcherError(Exception):
    """Base class for every error raised by the watcher core."""


class TransientUpstreamError(DropWatcherError):
    """Network failure, timeout, non-2xx or undecodable upstream response.

    The current detection cycle is aborted without touching subscription
    state; the next scheduled tick retries the same window.
    """


class MalformedPaginationCursor(TransientUpstreamError):
    """The upstream ``next`` pointer could not be turned into a request."""


class SubscriptionLimitError(DropWatcherError):
    """The registry is full and cannot accept another tracked character."""
