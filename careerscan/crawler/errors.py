"""Exception hierarchy for the crawl orchestration engine."""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for crawler errors."""


class StopRequested(CrawlerError):
    """Raised inside a long-running action when the operator stops the run."""

    def __init__(self, message: str = "Stop requested") -> None:
        super().__init__(message)


class HandoffError(CrawlerError):
    """Base class for human-handoff gate errors."""


class HandoffBusyError(HandoffError):
    """A second wait was registered while one is still pending."""


class HandoffNotPendingError(HandoffError):
    """A completion signal arrived with no wait in progress."""


class HandoffCancelledError(HandoffError):
    """The pending wait was cancelled without a completion signal."""


__all__ = [
    "CrawlerError",
    "HandoffBusyError",
    "HandoffCancelledError",
    "HandoffError",
    "HandoffNotPendingError",
    "StopRequested",
]
