"""Filter discovered links before they are enqueued on a source's frontier.

Permissive by default: any same-domain link survives unless it is an obvious
static asset, internal API, auth/legal page, or an external ATS apply link.
"""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlsplit

from .types import FilteredLink, FrontierItem
from .url import normalize_url


BLOCKED_PATH_PREFIXES = (
    "/api/",
    "/static/",
    "/assets/",
    "/css/",
    "/js/",
    "/fonts/",
    "/images/",
    "/img/",
    "/media/",
    "/wp-content/",
    "/wp-admin/",
    "/feed/",
    "/rss/",
    "/.well-known/",
    "/cdn-cgi/",
    "/talent/_next/",
    "/_next/",
)

# Matched against the whole path only: /login is blocked, /company/login-startup is not.
BLOCKED_EXACT_PATHS = frozenset(
    {
        "/login",
        "/signin",
        "/signup",
        "/register",
        "/auth",
        "/privacy",
        "/terms",
        "/robots.txt",
        "/sitemap.xml",
    }
)

EXTERNAL_ATS_DOMAINS = (
    "greenhouse.io",
    "lever.co",
    "workday.com",
    "icims.com",
    "smartrecruiters.com",
    "ashbyhq.com",
    "bamboohr.com",
    "breezy.hr",
    "recruitee.com",
    "workable.com",
    "jazz.co",
    "jobvite.com",
    "myworkdayjobs.com",
    "taleo.net",
    "successfactors.com",
)

NON_PAGE_EXTENSION_RE = re.compile(
    r"\.(js|css|png|jpg|jpeg|gif|svg|ico|woff|woff2|ttf|eot|map|json|xml)$",
    re.IGNORECASE,
)


def _hostname(url: str) -> str | None:
    try:
        parsed = urlsplit(url)
        parsed.port
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return parsed.hostname.lower()


def is_external_apply_url(url: str) -> bool:
    """Return True when URL points at a known third-party ATS apply host."""

    host = _hostname(url)
    if host is None:
        return False
    return any(domain in host for domain in EXTERNAL_ATS_DOMAINS)


def is_same_site(host: str, source_domain: str) -> bool:
    """Loose containment check tolerating www./regional subdomain variants."""

    domain = source_domain.strip().lower()
    if not host or not domain:
        return False
    return domain in host or host in domain


def is_blocked_path(path: str) -> bool:
    path_lower = (path or "/").lower()

    if any(path_lower.startswith(prefix) for prefix in BLOCKED_PATH_PREFIXES):
        return True

    exact = path_lower[:-1] if len(path_lower) > 1 and path_lower.endswith("/") else path_lower
    if exact in BLOCKED_EXACT_PATHS:
        return True

    return NON_PAGE_EXTENSION_RE.search(path_lower) is not None


def filter_links(
    candidate_urls: Iterable[str],
    *,
    source_domain: str,
    url_seen: set[str],
    frontier: Iterable[FrontierItem],
    current_depth: int,
    max_depth: int,
) -> list[FilteredLink]:
    """Return unseen, same-site, crawlable links at `current_depth + 1`.

    Results are normalized and deduplicated against `url_seen`, the current
    frontier, and earlier candidates in the same batch.
    """

    next_depth = current_depth + 1
    if next_depth > max_depth:
        return []

    queued = {normalize_url(item.url) for item in frontier}
    result: list[FilteredLink] = []

    for raw_url in candidate_urls:
        normalized = normalize_url(raw_url)
        if normalized in url_seen or normalized in queued:
            continue

        host = _hostname(normalized)
        if host is None:
            continue
        if not is_same_site(host, source_domain):
            continue
        if is_external_apply_url(normalized):
            continue
        if is_blocked_path(urlsplit(normalized).path):
            continue

        result.append(FilteredLink(url=normalized, depth=next_depth))
        queued.add(normalized)

    return result


__all__ = [
    "BLOCKED_EXACT_PATHS",
    "BLOCKED_PATH_PREFIXES",
    "EXTERNAL_ATS_DOMAINS",
    "filter_links",
    "is_blocked_path",
    "is_external_apply_url",
    "is_same_site",
]
