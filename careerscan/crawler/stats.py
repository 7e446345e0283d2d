"""Thread-safe crawl statistics aggregation utilities."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import threading
from typing import Any, Mapping

from .types import ActionType, FetchResult, PageType, SourceStatus, utc_now_iso


class StatsCollector:
    """Collect and summarize crawl runtime statistics.

    The collector is thread-safe; one instance may be shared by sources that
    run in parallel.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = utc_now_iso()
        self._finished_at: str | None = None

        self._action_counts: dict[str, int] = defaultdict(int)
        self._page_type_counts: dict[str, int] = defaultdict(int)
        self._source_status_counts: dict[str, int] = defaultdict(int)
        self._handoff_counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

        self._fetch_backend_counts: dict[str, dict[str, int]] = defaultdict(
            lambda: {"ok": 0, "error": 0}
        )
        self._fetch_status_code_counts: dict[str, int] = defaultdict(int)
        self._fetch_error_type_counts: dict[str, int] = defaultdict(int)
        self._fetch_elapsed_ms_total = 0
        self._fetch_elapsed_samples = 0

        self._visits = 0
        self._jobs_extracted = 0
        self._links_enqueued = 0
        self._pagination_seeds = 0
        self._url_corrections = 0
        self._retries = 0
        self._custom_counters: dict[str, int] = defaultdict(int)

    def record_action(self, action_type: ActionType | str) -> None:
        key = action_type.value if isinstance(action_type, ActionType) else str(action_type)
        with self._lock:
            self._action_counts[key] += 1

    def record_fetch(self, result: FetchResult) -> None:
        """Record one fetch result."""

        with self._lock:
            state = "ok" if result.ok else "error"
            self._fetch_backend_counts[result.backend.value][state] += 1

            if result.status_code is not None:
                self._fetch_status_code_counts[str(result.status_code)] += 1

            if result.error:
                err_type = result.error.split(":", maxsplit=1)[0].strip() or "Unknown"
                self._fetch_error_type_counts[err_type] += 1

            if result.elapsed_ms is not None:
                self._fetch_elapsed_ms_total += int(result.elapsed_ms)
                self._fetch_elapsed_samples += 1

    def record_visit(self, page_type: PageType | None, jobs_count: int, *, revisit: bool = False) -> None:
        """Count a page visit; a revisit only adds the jobs it newly found."""

        with self._lock:
            if not revisit:
                self._visits += 1
                self._page_type_counts["none" if page_type is None else page_type.value] += 1
            self._jobs_extracted += max(0, jobs_count)

    def record_links(self, enqueued: int, *, pagination: bool = False) -> None:
        if enqueued <= 0:
            return
        with self._lock:
            if pagination:
                self._pagination_seeds += enqueued
            else:
                self._links_enqueued += enqueued

    def record_handoff(self, purpose: str, outcome: str) -> None:
        with self._lock:
            self._handoff_counts[purpose][outcome] += 1

    def record_url_correction(self, attempts_made: int) -> None:
        with self._lock:
            self._url_corrections += max(0, attempts_made)

    def record_retry(self) -> None:
        with self._lock:
            self._retries += 1

    def record_source(self, status: SourceStatus) -> None:
        with self._lock:
            self._source_status_counts[status.value] += 1

    def increment(self, name: str, value: int = 1) -> None:
        """Increment a custom counter for ad-hoc instrumentation."""

        if not name or value == 0:
            return
        with self._lock:
            self._custom_counters[name] += value

    def finish(self) -> None:
        """Mark crawl as finished."""

        with self._lock:
            self._finished_at = utc_now_iso()

    @property
    def jobs_extracted(self) -> int:
        with self._lock:
            return self._jobs_extracted

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable summary payload."""

        with self._lock:
            start = _parse_iso_utc(self._started_at)
            end = _parse_iso_utc(self._finished_at) if self._finished_at else datetime.now(timezone.utc)
            duration_seconds = max(0.0, (end - start).total_seconds())

            fetch_elapsed_avg = (
                self._fetch_elapsed_ms_total / self._fetch_elapsed_samples
                if self._fetch_elapsed_samples > 0
                else 0.0
            )

            return {
                "started_at": self._started_at,
                "finished_at": self._finished_at,
                "duration_seconds": duration_seconds,
                "visits": self._visits,
                "jobs_extracted": self._jobs_extracted,
                "links_enqueued": self._links_enqueued,
                "pagination_seeds": self._pagination_seeds,
                "url_corrections": self._url_corrections,
                "retries": self._retries,
                "actions": dict(self._action_counts),
                "page_types": dict(self._page_type_counts),
                "sources": dict(self._source_status_counts),
                "handoffs": {
                    str(purpose): dict(outcomes) for purpose, outcomes in self._handoff_counts.items()
                },
                "fetch": {
                    "by_backend": {
                        str(key): dict(bucket) for key, bucket in self._fetch_backend_counts.items()
                    },
                    "status_code_counts": dict(self._fetch_status_code_counts),
                    "error_type_counts": dict(self._fetch_error_type_counts),
                    "elapsed_ms_total": self._fetch_elapsed_ms_total,
                    "elapsed_ms_samples": self._fetch_elapsed_samples,
                    "elapsed_ms_avg": fetch_elapsed_avg,
                },
                "custom_counters": dict(self._custom_counters),
            }


def _parse_iso_utc(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["StatsCollector"]
