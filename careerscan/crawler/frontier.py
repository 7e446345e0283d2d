"""Priority frontier for one source's crawl."""

from __future__ import annotations

import re
from typing import Iterable, Iterator

from .constants import DEFAULT_PRIORITY
from .types import FilteredLink, FrontierItem
from .url import normalize_url


_COMPANY_JOBS_RE = re.compile(r"/company/[^/]+/jobs")
_COMPANY_ROOT_RE = re.compile(r"/company/[^/]+/?$")
_DETAIL_RES = (re.compile(r"/jobs/\d+-"), re.compile(r"/job/\d+"))
_PAGE_PARAM_RE = re.compile(r"[?&]page=\d+")
_CATEGORY_RE = re.compile(r"/role/|/category/|/department/")


def estimate_priority(url: str) -> int:
    """Rank a URL by shape alone; higher is visited first.

    Listing indexes (90) > company job lists (85) > company roots (80) >
    `page=N` listings (75) > category pages (70) > other (50) > job details (40).
    """

    lower = url.lower()
    if _COMPANY_JOBS_RE.search(lower):
        return 85
    if _COMPANY_ROOT_RE.search(lower):
        return 80
    if any(pattern.search(lower) for pattern in _DETAIL_RES):
        return 40
    if lower.endswith("/jobs") or "/jobs?" in lower or "/jobs/search" in lower:
        return 90
    if _PAGE_PARAM_RE.search(lower):
        return 75
    if _CATEGORY_RE.search(lower):
        return 70
    return DEFAULT_PRIORITY


class Frontier:
    """Mutable work queue of `FrontierItem`s owned by one crawl state.

    - Priority is fixed at insertion time.
    - `pop_next` returns the highest-priority item; the earliest inserted item
      wins ties, so selection is deterministic.
    - The frontier does not deduplicate; the planner checks `url_seen` at pop time.
    """

    def __init__(self, items: Iterable[FrontierItem] | None = None) -> None:
        self._items: list[FrontierItem] = list(items or [])
        self._pushed_count = len(self._items)
        self._popped_count = 0
        self._removed_count = 0

    def push(
        self,
        url: str,
        *,
        depth: int,
        priority: int | None = None,
        front: bool = False,
    ) -> FrontierItem:
        """Add one URL; `front=True` makes it win priority ties."""

        if depth < 0:
            raise ValueError("depth must be >= 0")

        item = FrontierItem(
            url=url,
            depth=depth,
            priority=estimate_priority(url) if priority is None else priority,
        )
        if front:
            self._items.insert(0, item)
        else:
            self._items.append(item)
        self._pushed_count += 1
        return item

    def push_many(self, links: Iterable[FilteredLink], *, priority: int | None = None) -> list[FrontierItem]:
        """Append filtered links, preserving input order."""

        return [self.push(link.url, depth=link.depth, priority=priority) for link in links]

    def pop_next(self) -> FrontierItem | None:
        """Remove and return the highest-priority item, or None when empty."""

        if not self._items:
            return None

        best_idx = 0
        best_priority = self._items[0].priority
        for idx in range(1, len(self._items)):
            if self._items[idx].priority > best_priority:
                best_priority = self._items[idx].priority
                best_idx = idx

        self._popped_count += 1
        return self._items.pop(best_idx)

    def contains(self, url: str) -> bool:
        """Return True if a queued item normalizes to the same URL."""

        target = normalize_url(url)
        return any(normalize_url(item.url) == target for item in self._items)

    def remove_url(self, url: str) -> int:
        """Drop every queued item that normalizes to `url`; return how many."""

        target = normalize_url(url)
        kept = [item for item in self._items if normalize_url(item.url) != target]
        removed = len(self._items) - len(kept)
        self._items = kept
        self._removed_count += removed
        return removed

    def items(self) -> list[FrontierItem]:
        """Return a snapshot copy of queued items in insertion order."""

        return list(self._items)

    def __iter__(self) -> Iterator[FrontierItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def snapshot(self) -> dict[str, int]:
        """Return frontier counters for logs/stats reporting."""

        return {
            "queue_size": len(self._items),
            "pushed": self._pushed_count,
            "popped": self._popped_count,
            "removed": self._removed_count,
        }


__all__ = ["Frontier", "estimate_priority"]
