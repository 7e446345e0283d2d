"""Find a working listing URL for a source whose current URL is broken.

`ProbingUrlResolver` tries well-known career paths on the same host first,
then hosts derived from the source name. Every candidate is fetched and kept
only if it answers 2xx/3xx, is not a blocker page and looks job-related. One
fetched candidate costs one correction attempt; the search never spends more
than the attempts the source has left.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urlsplit

from .classifier import HeuristicPageClassifier
from .constants import DEFAULT_MAX_URL_CORRECTION_ATTEMPTS
from .ports import PageClassifier, PageFetcher
from .types import PageType, UrlCorrection
from .url import normalize_url


LOGGER = logging.getLogger(__name__)

SAME_DOMAIN_PATHS = (
    "/jobs",
    "/careers",
    "/openings",
    "/jobs/search",
    "/career",
    "/positions",
    "/job-openings",
    "/work-with-us",
    "/",
)

COMPANY_URL_PATTERNS = (
    "https://careers.{name}.com",
    "https://{name}.com/careers",
    "https://{name}.com/jobs",
    "https://jobs.{name}.com",
)

JOB_INDICATORS = (
    "career",
    "jobs",
    "job-openings",
    "opportunities",
    "positions",
    "hiring",
    "apply",
    "employment",
    "openings",
    "vacancies",
    "job-card",
    "job-listing",
    "jobposting",
    "job-title",
)

BLOCKER_PAGE_TYPES = frozenset({PageType.ERROR, PageType.CAPTCHA_CHALLENGE, PageType.LOGIN_WALL})

_PAREN_SUFFIX_RE = re.compile(r"\s*\(.*\)$")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def company_slug(source_name: str) -> str:
    """Host-safe form of a source name, e.g. Acme Corp (EU) -> acmecorp."""

    name = _PAREN_SUFFIX_RE.sub("", source_name or "").strip().lower()
    return _NON_ALNUM_RE.sub("", name)


def same_domain_candidates(url: str) -> list[str]:
    try:
        parsed = urlsplit(url)
    except ValueError:
        return []
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        return []
    return [f"{parsed.scheme}://{parsed.netloc}{path}" for path in SAME_DOMAIN_PATHS]


def company_candidates(source_name: str) -> list[str]:
    name = company_slug(source_name)
    if not name:
        return []
    return [pattern.format(name=name) for pattern in COMPANY_URL_PATTERNS]


def looks_job_related(html: str) -> bool:
    lower = (html or "").lower()
    return any(indicator in lower for indicator in JOB_INDICATORS)


class ProbingUrlResolver:
    """Default `UrlResolver`: probe candidate URLs through a `PageFetcher`."""

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        classifier: PageClassifier | None = None,
        max_attempts: int = DEFAULT_MAX_URL_CORRECTION_ATTEMPTS,
    ) -> None:
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self.fetcher = fetcher
        self.classifier = classifier or HeuristicPageClassifier()
        self.max_attempts = max_attempts

    def is_usable(self, url: str) -> bool:
        """Fetch `url` and report whether it can stand in for the source URL."""

        fetched = self.fetcher.fetch(url)
        if not fetched.ok:
            LOGGER.debug("Candidate %s failed: %s", url, fetched.error)
            return False

        status = fetched.status_code
        if status is not None and not (200 <= status < 400):
            return False

        html = fetched.html or ""
        page_type = self.classifier.classify(html, fetched.final_url or url, status_code=status)
        if page_type in BLOCKER_PAGE_TYPES:
            return False
        return looks_job_related(html)

    def resolve(self, url: str, source_name: str, attempts_so_far: int) -> UrlCorrection:
        remaining = self.max_attempts - attempts_so_far
        if remaining <= 0:
            return UrlCorrection(corrected_url=None, attempts_made=0, method="none")

        current = normalize_url(url)
        tried: list[str] = []
        stages = (
            ("same_domain", same_domain_candidates(url)),
            ("company_name", company_candidates(source_name)),
        )

        for method, candidates in stages:
            for candidate in candidates:
                if len(tried) >= remaining:
                    break
                if normalize_url(candidate) == current or candidate in tried:
                    continue

                tried.append(candidate)
                if self.is_usable(candidate):
                    LOGGER.info("Resolved %s for %s via %s: %s", url, source_name, method, candidate)
                    return UrlCorrection(
                        corrected_url=candidate,
                        attempts_made=len(tried),
                        method=method,
                        tried_urls=tuple(tried),
                    )

        LOGGER.info("No usable correction for %s (%s) after %d probes", source_name, url, len(tried))
        return UrlCorrection(corrected_url=None, attempts_made=len(tried), method="none", tried_urls=tuple(tried))


__all__ = [
    "COMPANY_URL_PATTERNS",
    "ProbingUrlResolver",
    "SAME_DOMAIN_PATHS",
    "company_candidates",
    "company_slug",
    "looks_job_related",
    "same_domain_candidates",
]
