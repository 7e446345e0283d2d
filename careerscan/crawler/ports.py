"""Interfaces of the collaborators the crawl driver depends on."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .types import AdvisorDecision, FetchResult, PageType, UrlCorrection, VisitContext


class PageFetcher(Protocol):
    def fetch(self, url: str) -> FetchResult: ...


class PageClassifier(Protocol):
    def classify(self, html: str, url: str, *, status_code: int | None = None) -> PageType: ...


class JobExtractor(Protocol):
    def extract(self, html: str, url: str) -> list[dict[str, Any]]: ...


class Advisor(Protocol):
    def advise(self, context: VisitContext) -> AdvisorDecision: ...


class UrlResolver(Protocol):
    def resolve(self, url: str, source_name: str, attempts_so_far: int) -> UrlCorrection: ...


@runtime_checkable
class PageHandle(Protocol):
    """A live page a human can interact with (e.g. a visible browser tab)."""

    def page_source(self) -> str: ...

    def close(self) -> None: ...


class HumanBrowser(Protocol):
    def open(self, url: str) -> PageHandle: ...


__all__ = [
    "Advisor",
    "HumanBrowser",
    "JobExtractor",
    "PageClassifier",
    "PageFetcher",
    "PageHandle",
    "UrlResolver",
]
