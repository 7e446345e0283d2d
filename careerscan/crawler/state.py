"""Crawl state for one source: frontier, seen-set, counters, last outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .constants import (
    DEFAULT_MAX_CONSECUTIVE_ZERO_JOB_VISITS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_URL_CORRECTION_ATTEMPTS,
    DEFAULT_STOP_ON_EXHAUSTION,
)
from .frontier import Frontier
from .types import LastResult, SourceConfig
from .url import normalize_url


@dataclass(slots=True)
class CrawlState:
    """Everything the planner needs to decide the next action for one source.

    One instance per source, mutated only by the single driver loop that owns
    it. `url_seen` holds normalized URLs and never shrinks during a run.
    """

    source: SourceConfig
    frontier: Frontier = field(default_factory=Frontier)
    url_seen: set[str] = field(default_factory=set)

    url_correction_attempts: int = 0
    max_url_correction_attempts: int = DEFAULT_MAX_URL_CORRECTION_ATTEMPTS
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    consecutive_zero_job_visits: int = 0
    max_consecutive_zero_job_visits: int = DEFAULT_MAX_CONSECUTIVE_ZERO_JOB_VISITS
    stop_on_exhaustion: bool = DEFAULT_STOP_ON_EXHAUSTION
    max_depth: int = DEFAULT_MAX_DEPTH

    stop_requested: bool = False
    last_result: LastResult | None = None

    def mark_seen(self, url: str) -> bool:
        """Add the normalized form of `url`; return True if it was new."""

        normalized = normalize_url(url)
        if normalized in self.url_seen:
            return False
        self.url_seen.add(normalized)
        return True

    def has_seen(self, url: str) -> bool:
        return normalize_url(url) in self.url_seen

    def record_visit(self, result: LastResult) -> None:
        """Fold one visit outcome into state and update the zero-job streak."""

        if result.jobs_count > 0:
            self.consecutive_zero_job_visits = 0
        else:
            self.consecutive_zero_job_visits += 1
        self.last_result = result

    def counters(self) -> dict[str, int]:
        """Observable counters for logging/telemetry."""

        return {
            "consecutive_zero_job_visits": self.consecutive_zero_job_visits,
            "url_correction_attempts": self.url_correction_attempts,
            "retry_count": self.retry_count,
            "frontier_size": len(self.frontier),
            "url_seen": len(self.url_seen),
        }


def create_crawl_state(
    source: SourceConfig,
    seed_urls: Iterable[str],
    *,
    visited_urls: Iterable[str] | None = None,
    **limits: int | bool,
) -> CrawlState:
    """Build a fresh state with `seed_urls` queued at depth 0.

    `visited_urls` (e.g. persisted from earlier runs) are normalized into
    `url_seen` so they are not revisited. Remaining keyword arguments override
    counter limits such as `max_retries` or `max_depth`.
    """

    frontier = Frontier()
    for url in seed_urls:
        frontier.push(url, depth=0)

    state = CrawlState(source=source, frontier=frontier, **limits)
    for url in visited_urls or ():
        state.mark_seen(url)
    return state


__all__ = ["CrawlState", "create_crawl_state"]
