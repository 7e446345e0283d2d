"""Pagination seeding for listing pages."""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


_COMPANY_JOBS_PATH_RE = re.compile(r"/company/[^/]+/jobs")


def looks_like_listing_path(path: str) -> bool:
    lower = path.lower()
    return (
        lower.endswith("/jobs")
        or "/jobs/search" in lower
        or _COMPANY_JOBS_PATH_RE.search(lower) is not None
    )


def _with_page(parts, page: int) -> str:  # urllib.parse.SplitResult
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    updated: list[tuple[str, str]] = []
    replaced = False
    for key, value in pairs:
        if key == "page":
            if replaced:
                continue
            updated.append((key, str(page)))
            replaced = True
        else:
            updated.append((key, value))
    if not replaced:
        updated.append(("page", str(page)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(updated), parts.fragment))


def generate_pagination_seeds(listing_url: str, max_pages: int = 5) -> list[str]:
    """Return `page=2..max_pages` variants of a listing URL.

    Only listing-shaped paths (`.../jobs`, `/jobs/search`, `/company/{slug}/jobs`)
    produce seeds; anything else, including malformed URLs, yields `[]`.
    Other query parameters are left untouched.
    """

    try:
        parts = urlsplit(listing_url)
    except ValueError:
        return []
    if not parts.scheme or not parts.netloc:
        return []
    if not looks_like_listing_path(parts.path):
        return []

    return [_with_page(parts, page) for page in range(2, max_pages + 1)]


__all__ = ["generate_pagination_seeds", "looks_like_listing_path"]
