"""Filesystem-backed storage for crawl captures, jobs and manifests.

Storage owns the on-disk layout. Other modules should use this API instead of
building paths manually.

    <output_dir>/
        logs/crawl.log
        manifests/crawl_config.json
        manifests/crawl_stats.json
        sources/<storage_key>/
            manifests/visited_urls.txt
            manifests/crawl_stats.json
            captures/<capture_id>.html
            captures/index.jsonl
            jobs.jsonl
            errors.jsonl
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping

from .config import CrawlConfig
from .constants import JSON_INDENT
from .types import (
    PRIOR_SEED_PAGE_TYPES,
    CaptureRecord,
    ErrorRecord,
    JSONDict,
    PageType,
    SourceConfig,
)
from .url import normalize_url


LOGGER = logging.getLogger(__name__)


def _append_jsonl(lock: threading.Lock, path: Path, payload: Mapping[str, Any]) -> None:
    line = json.dumps(payload, ensure_ascii=False, sort_keys=True)
    with lock:
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


def _read_jsonl(path: Path) -> Iterable[dict[str, Any]]:
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError:
                LOGGER.warning("Skipping malformed row in %s", path)
                continue
            if isinstance(payload, dict):
                yield payload


def _atomic_write_text(path: Path, content: str) -> None:
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=path.name + ".",
        suffix=".tmp",
    )
    try:
        with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    content = json.dumps(payload, ensure_ascii=False, indent=JSON_INDENT, sort_keys=True) + "\n"
    _atomic_write_text(path, content)


class SourceStore:
    """Persist one source's crawl outputs under its own directory."""

    def __init__(self, root: str | Path, *, load_existing: bool = True) -> None:
        self.root = Path(root)

        self.manifests_dir = self.root / "manifests"
        self.captures_dir = self.root / "captures"

        self.visited_urls_path = self.manifests_dir / "visited_urls.txt"
        self.crawl_stats_path = self.manifests_dir / "crawl_stats.json"
        self.capture_index_path = self.captures_dir / "index.jsonl"
        self.jobs_path = self.root / "jobs.jsonl"
        self.errors_path = self.root / "errors.jsonl"

        self._jsonl_lock = threading.Lock()
        self._state_lock = threading.Lock()

        self._visited_urls: set[str] = set()
        self._captures: list[CaptureRecord] = []

        self.manifests_dir.mkdir(parents=True, exist_ok=True)
        self.captures_dir.mkdir(parents=True, exist_ok=True)
        if load_existing:
            self._load_state()

    def _load_state(self) -> None:
        if self.visited_urls_path.exists():
            with self.visited_urls_path.open("r", encoding="utf-8") as handle:
                for line in handle:
                    url = line.strip()
                    if url:
                        self._visited_urls.add(url)

        self._captures = [CaptureRecord.from_json(row) for row in _read_jsonl(self.capture_index_path)]

    def mark_visited(self, url: str) -> bool:
        """Persist the normalized URL in the visited manifest.

        Returns True when newly added, False when it already existed.
        """

        normalized = normalize_url(url)
        with self._state_lock:
            if normalized in self._visited_urls:
                return False
            self._visited_urls.add(normalized)

        with self._jsonl_lock:
            with self.visited_urls_path.open("a", encoding="utf-8") as handle:
                handle.write(normalized + "\n")
        return True

    def visited_urls(self) -> set[str]:
        """Return snapshot copy of known visited URLs."""

        with self._state_lock:
            return set(self._visited_urls)

    def save_capture(
        self,
        *,
        url: str,
        html: str,
        depth: int,
        page_type: PageType | None,
        jobs_count: int,
        strategy: str = "visit",
    ) -> CaptureRecord:
        """Write raw HTML atomically and append its row to the capture index."""

        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:12]
        with self._state_lock:
            capture_id = f"{len(self._captures) + 1:06d}-{digest}"
            record = CaptureRecord(
                capture_id=capture_id,
                url=url,
                depth=depth,
                page_type=page_type,
                jobs_count=jobs_count,
                strategy=strategy,
            )
            self._captures.append(record)

        _atomic_write_text(self.capture_path(capture_id), html or "")
        _append_jsonl(self._jsonl_lock, self.capture_index_path, record.to_json())
        return record

    def capture_path(self, capture_id: str) -> Path:
        return self.captures_dir / f"{capture_id}.html"

    def read_capture(self, capture_id: str) -> str | None:
        path = self.capture_path(capture_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def captures(self) -> list[CaptureRecord]:
        with self._state_lock:
            return list(self._captures)

    def prior_listing_urls(self, limit: int) -> list[str]:
        """Most recent listing-like capture URLs that yielded jobs, newest first."""

        if limit <= 0:
            return []

        out: list[str] = []
        seen: set[str] = set()
        for record in reversed(self.captures()):
            if record.jobs_count <= 0 or record.page_type not in PRIOR_SEED_PAGE_TYPES:
                continue
            key = normalize_url(record.url)
            if key in seen:
                continue
            seen.add(key)
            out.append(record.url)
            if len(out) >= limit:
                break
        return out

    def save_jobs(self, jobs: Iterable[Mapping[str, Any]], *, capture_id: str) -> int:
        """Append job rows tagged with their capture; return how many were written."""

        count = 0
        for job in jobs:
            _append_jsonl(self._jsonl_lock, self.jobs_path, {**job, "capture_id": capture_id})
            count += 1
        return count

    def save_error(self, record: ErrorRecord) -> None:
        """Append error record to `errors.jsonl`."""

        _append_jsonl(self._jsonl_lock, self.errors_path, record.to_json())

    def save_crawl_stats(self, payload: Mapping[str, Any]) -> None:
        _atomic_write_json(self.crawl_stats_path, dict(payload))


class Storage:
    """Persist run-level manifests and hand out per-source stores."""

    def __init__(self, output_dir: str | Path, *, load_existing: bool = True) -> None:
        self.output_dir = Path(output_dir)
        self.load_existing = load_existing

        self.sources_dir = self.output_dir / "sources"
        self.manifests_dir = self.output_dir / "manifests"
        self.logs_dir = self.output_dir / "logs"

        self.crawl_config_path = self.manifests_dir / "crawl_config.json"
        self.crawl_stats_path = self.manifests_dir / "crawl_stats.json"

        self._lock = threading.Lock()
        self._stores: dict[str, SourceStore] = {}

        for directory in (self.sources_dir, self.manifests_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "sources_dir": str(self.sources_dir),
            "crawl_config": str(self.crawl_config_path),
            "crawl_stats": str(self.crawl_stats_path),
            "log_dir": str(self.logs_dir),
        }

    def source_store(self, source: SourceConfig) -> SourceStore:
        with self._lock:
            store = self._stores.get(source.storage_key)
            if store is None:
                store = SourceStore(
                    self.sources_dir / source.storage_key,
                    load_existing=self.load_existing,
                )
                self._stores[source.storage_key] = store
            return store

    def save_crawl_config(self, config: CrawlConfig | Mapping[str, Any]) -> None:
        """Write crawl config manifest atomically as JSON."""

        payload = config.to_dict() if isinstance(config, CrawlConfig) else config
        _atomic_write_json(self.crawl_config_path, dict(payload))

    def save_crawl_stats(self, payload: Mapping[str, Any]) -> None:
        """Write crawl stats manifest atomically as JSON."""

        _atomic_write_json(self.crawl_stats_path, dict(payload))


__all__ = ["SourceStore", "Storage"]
