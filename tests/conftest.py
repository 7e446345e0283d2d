from __future__ import annotations

import json
from typing import Any

import pytest

from careerscan.crawler import (
    Collaborators,
    CrawlConfig,
    FetchResult,
    RunContext,
    SourceConfig,
    SourceStore,
    create_crawl_state,
)


def job_posting_html(*titles: str, body: str = "") -> str:
    scripts = "".join(
        '<script type="application/ld+json">'
        + json.dumps({"@context": "https://schema.org", "@type": "JobPosting", "title": title})
        + "</script>"
        for title in titles
    )
    return f"<html><head>{scripts}</head><body>{body}</body></html>"


class FakeFetcher:
    """Serves canned HTML by exact URL; unknown URLs fail like a network error."""

    def __init__(self, pages: dict[str, str], *, status_codes: dict[str, int] | None = None) -> None:
        self.pages = pages
        self.status_codes = status_codes or {}
        self.calls: list[str] = []

    def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        if url not in self.pages:
            return FetchResult(requested_url=url, error="ConnectionError: no route")
        return FetchResult(
            requested_url=url,
            final_url=url,
            html=self.pages[url],
            status_code=self.status_codes.get(url, 200),
        )


class FakePage:
    def __init__(self, html: str) -> None:
        self.html = html
        self.closed = False

    def page_source(self) -> str:
        return self.html

    def close(self) -> None:
        self.closed = True


class FakeHumanBrowser:
    def __init__(self, html: str = "<html></html>") -> None:
        self.html = html
        self.opened: list[str] = []
        self.pages: list[FakePage] = []

    def open(self, url: str) -> FakePage:
        self.opened.append(url)
        page = FakePage(self.html)
        self.pages.append(page)
        return page


class ScriptedAdvisor:
    """Returns the same decision for every visit and records what it saw."""

    def __init__(self, decision: Any) -> None:
        self.decision = decision
        self.contexts: list[Any] = []

    def advise(self, context):
        self.contexts.append(context)
        return self.decision


@pytest.fixture
def source() -> SourceConfig:
    return SourceConfig(id="acme", name="Acme", url="https://acme.com/jobs", slug="acme")


@pytest.fixture
def make_config(source):
    def factory(**overrides: Any) -> CrawlConfig:
        payload: dict[str, Any] = {
            "sources": [source],
            "retries": 0,
            "rate_limit_seconds": 0,
            "cycle_delay_seconds": 0,
        }
        payload.update(overrides)
        return CrawlConfig(**payload)

    return factory


@pytest.fixture
def store(tmp_path) -> SourceStore:
    return SourceStore(tmp_path / "acme")


@pytest.fixture
def context() -> RunContext:
    return RunContext()


@pytest.fixture
def make_state(source):
    def factory(seeds: list[str] | None = None, **limits: Any):
        return create_crawl_state(source, seeds if seeds is not None else [], **limits)

    return factory


@pytest.fixture
def collaborators_for():
    def factory(pages: dict[str, str], **kwargs: Any) -> Collaborators:
        status_codes = kwargs.pop("status_codes", None)
        return Collaborators(fetcher=FakeFetcher(pages, status_codes=status_codes), **kwargs)

    return factory
