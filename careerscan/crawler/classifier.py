"""Keyword/URL heuristic page classifier.

Every page type gets an additive score from cheap text and URL signals. The
best score wins if it reaches `threshold`; otherwise the page is `other`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .types import PageType


DEFAULT_THRESHOLD = 0.6

CAPTCHA_PHRASES = (
    "verify you are human",
    "complete the captcha",
    "captcha challenge",
    "solve the captcha",
    "please verify",
)
LOGIN_PHRASES = (
    "sign in to continue",
    "log in to continue",
    "login required",
    "please sign in",
    "please log in",
)
EXPIRED_PHRASES = (
    "no longer available",
    "job has been removed",
    "position has been filled",
    "listing has expired",
    "this job is closed",
)
APPLY_PHRASES = ("apply now", "apply for this", "start application", "submit application")
JOB_DESCRIPTION_PHRASES = (
    "job description",
    "responsibilities",
    "requirements",
    "your objectives",
    "skills & talents",
)
SALARY_PHRASES = ("salary", "compensation", "per week", "base salary range")

DETAIL_URL_RES = tuple(
    re.compile(pattern)
    for pattern in (
        r"/jobs/\d+-",
        r"/job/\d+",
        r"/jobs/view/\d+",
        r"/careers?/details?/",
        r"/career/[^/]+",
        r"/position/[^/]+",
        r"/opening/[^/]+",
        r"/vacancy/[^/]+",
        r"/job/[^/]+",
        r"/jobs/[^/?#]+",
    )
)
JOB_LINK_RE = re.compile(r"/jobs/\d+-")
SALARY_RANGE_RE = re.compile(r"\$[\d,]+(\s*to|-)\s*\$[\d,]+")
COMPANY_URL_RES = (re.compile(r"/company/[^/]+/?$"), re.compile(r"/company/[^/]+/jobs"))
CATEGORY_URL_RE = re.compile(r"/role/|/category/|/department/")


@dataclass(slots=True)
class PageScore:
    """Accumulated score for one candidate page type."""

    page_type: PageType
    score: float = 0.0
    signals: list[str] = field(default_factory=list)

    def add(self, amount: float, signal: str) -> None:
        self.score += amount
        self.signals.append(signal)


def _phrase_hits(score: PageScore, text: str, phrases: tuple[str, ...], amount: float, prefix: str) -> None:
    for phrase in phrases:
        if phrase in text:
            score.add(amount, f"{prefix}:{phrase}")


class HeuristicPageClassifier:
    """Label fetched HTML with a `PageType` without any model calls."""

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        if not (0.0 < threshold <= 1.0):
            raise ValueError("threshold must be in (0, 1]")
        self.threshold = threshold

    def classify(self, html: str, url: str, *, status_code: int | None = None) -> PageType:
        scores = self.score(html, url, status_code=status_code)
        # Stable sort keeps the earlier candidate on ties.
        best = sorted(scores, key=lambda item: item.score, reverse=True)[0]
        if best.score >= self.threshold:
            return best.page_type
        return PageType.OTHER

    def score(self, html: str, url: str, *, status_code: int | None = None) -> list[PageScore]:
        lower = (html or "").lower()
        url_lower = (url or "").lower()
        html_len = len(html or "")
        job_links = len(JOB_LINK_RE.findall(lower))

        error = PageScore(PageType.ERROR)
        if status_code and (status_code == 404 or status_code >= 500):
            error.add(0.8, f"status_{status_code}")
        if "page not found" in lower or "404" in lower:
            error.add(0.3, "not_found_text")
        if "500" in lower and "error" in lower:
            error.add(0.3, "server_error_text")
        if html_len < 3000 and ("not found" in lower or "does not exist" in lower):
            error.add(0.3, "short_error_page")

        captcha = PageScore(PageType.CAPTCHA_CHALLENGE)
        _phrase_hits(captcha, lower, CAPTCHA_PHRASES, 0.4, "captcha_phrase")
        if html_len < 5000 and captcha.score > 0:
            captcha.add(0.2, "small_html_captcha")

        login = PageScore(PageType.LOGIN_WALL)
        _phrase_hits(login, lower, LOGIN_PHRASES, 0.35, "login_phrase")
        if "<form" in lower and ("password" in lower or "email" in lower) and "/jobs/" not in lower:
            login.add(0.25, "login_form_detected")
        if any(part in url_lower for part in ("/login", "/signin", "/auth")):
            login.add(0.3, "login_url")

        expired = PageScore(PageType.EXPIRED)
        _phrase_hits(expired, lower, EXPIRED_PHRASES, 0.4, "expired_phrase")

        detail = PageScore(PageType.DETAIL)
        if any(pattern.search(url_lower) for pattern in DETAIL_URL_RES):
            detail.add(0.5, "detail_url_pattern")
        if lower.count("<h1") == 1 and html_len > 5000:
            detail.add(0.15, "single_h1")
        if any(phrase in lower for phrase in APPLY_PHRASES):
            detail.add(0.2, "apply_button")
        if "attach" in lower and any(word in lower for word in ("resume", "cv", "curriculum")):
            detail.add(0.25, "attach_resume")
        if any(phrase in lower for phrase in JOB_DESCRIPTION_PHRASES):
            detail.add(0.15, "jd_keywords")
        if any(phrase in lower for phrase in SALARY_PHRASES) or SALARY_RANGE_RE.search(lower):
            detail.add(0.2, "salary_mentioned")
        if job_links <= 3:
            detail.add(0.1, "few_job_links")

        listing = PageScore(PageType.LISTING)
        if job_links >= 5:
            listing.add(0.5, f"many_job_links:{job_links}")
        elif job_links >= 2:
            listing.add(0.25, f"some_job_links:{job_links}")
        if url_lower.endswith("/jobs") or "/jobs?" in url_lower or "/jobs/search" in url_lower:
            listing.add(0.3, "listing_url_pattern")
        if any(marker in lower for marker in ("job-card", "job-listing", "jobposting")):
            listing.add(0.15, "job_card_class")

        company = PageScore(PageType.COMPANY_CAREERS)
        if any(pattern.search(url_lower) for pattern in COMPANY_URL_RES):
            company.add(0.4, "company_url_pattern")
        if any(phrase in lower for phrase in ("open positions", "view jobs", "see all jobs")):
            company.add(0.25, "company_jobs_cta")

        category = PageScore(PageType.CATEGORY_LISTING)
        if CATEGORY_URL_RE.search(url_lower):
            category.add(0.4, "category_url_pattern")
        if any(phrase in lower for phrase in ("engineering jobs", "remote jobs", "marketing jobs")):
            category.add(0.2, "category_heading")
        if job_links >= 3 and category.score > 0:
            category.add(0.2, "has_job_links_in_category")

        return [error, captcha, login, expired, detail, listing, company, category]


__all__ = ["DEFAULT_THRESHOLD", "HeuristicPageClassifier", "PageScore"]
