"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    DEFAULT_CYCLE_DELAY_SECONDS,
    DEFAULT_CYCLES,
    DEFAULT_FETCH_BACKEND,
    DEFAULT_HTTP_HEADERS,
    DEFAULT_HUMAN_HANDOFF,
    DEFAULT_MAX_CONSECUTIVE_ZERO_JOB_VISITS,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_JOBS_PER_SOURCE,
    DEFAULT_MAX_PARALLEL_SOURCES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_STEPS_PER_CYCLE,
    DEFAULT_MAX_URL_CORRECTION_ATTEMPTS,
    DEFAULT_PAGINATION_MAX_PAGES,
    DEFAULT_RATE_LIMIT_SECONDS,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_SELENIUM_WAIT_SECONDS,
    DEFAULT_STOP_ON_EXHAUSTION,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    JSON_INDENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import FetchBackend, JSONDict, JSONValue, SourceConfig
from .url import host_from_url, is_absolute_http_url


def _as_float(value: Any, key: str) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _to_backend(value: Any) -> FetchBackend:
    if isinstance(value, FetchBackend):
        return value
    if isinstance(value, str):
        try:
            return FetchBackend(value.strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid backend value: {value!r}") from exc
    raise ValueError(f"Invalid backend value: {value!r}")


def _coerce_source(value: Any, index: int) -> SourceConfig:
    if isinstance(value, SourceConfig):
        return value

    if isinstance(value, str):
        url = value.strip()
        if not is_absolute_http_url(url):
            raise ValueError(f"Invalid source URL at sources[{index}]: {value!r}")
        host = host_from_url(url)
        return SourceConfig(id=host or str(index), name=host or url, url=url)

    if isinstance(value, Mapping):
        url = str(value.get("url", "")).strip()
        if not is_absolute_http_url(url):
            raise ValueError(f"Source config missing valid 'url': {value!r}")
        host = host_from_url(url)
        name = str(value.get("name") or host or url)
        slug = value.get("slug")
        return SourceConfig(
            id=str(value.get("id") or slug or host or index),
            name=name,
            url=url,
            slug=None if slug is None else str(slug),
            type=str(value.get("type", "COMPANY")),
            enabled=_as_bool(value.get("enabled", True), "enabled"),
            seed_urls=[str(item) for item in value.get("seed_urls", [])],
            metadata=dict(value.get("metadata", {})),
        )

    raise TypeError(f"Unsupported source config value: {type(value)!r}")


def _coerce_source_list(values: list[Any]) -> list[SourceConfig]:
    dedup: dict[str, SourceConfig] = {}
    for index, item in enumerate(values):
        source = _coerce_source(item, index)
        dedup[source.id] = source
    return list(dedup.values())


@dataclass(slots=True)
class CrawlConfig:
    """Top-level configuration used by the driver, scrape loop and fetcher."""

    sources: list[SourceConfig]

    max_depth: int = DEFAULT_MAX_DEPTH
    max_retries: int = DEFAULT_MAX_RETRIES
    max_url_correction_attempts: int = DEFAULT_MAX_URL_CORRECTION_ATTEMPTS
    max_consecutive_zero_job_visits: int = DEFAULT_MAX_CONSECUTIVE_ZERO_JOB_VISITS
    stop_on_exhaustion: bool = DEFAULT_STOP_ON_EXHAUSTION

    pagination_max_pages: int = DEFAULT_PAGINATION_MAX_PAGES
    max_jobs_per_source: int = DEFAULT_MAX_JOBS_PER_SOURCE
    max_steps_per_cycle: int = DEFAULT_MAX_STEPS_PER_CYCLE
    max_parallel_sources: int = DEFAULT_MAX_PARALLEL_SOURCES
    cycles: int = DEFAULT_CYCLES
    cycle_delay_seconds: float = DEFAULT_CYCLE_DELAY_SECONDS

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retries: int = DEFAULT_RETRIES
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    rate_limit_seconds: float = DEFAULT_RATE_LIMIT_SECONDS

    user_agent: str = DEFAULT_USER_AGENT
    default_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HTTP_HEADERS))
    backend: FetchBackend = DEFAULT_FETCH_BACKEND
    selenium_wait_seconds: float = DEFAULT_SELENIUM_WAIT_SECONDS
    human_handoff: bool = DEFAULT_HUMAN_HANDOFF

    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.sources = _coerce_source_list(list(self.sources))
        if not self.sources:
            raise ValueError("CrawlConfig requires at least one source")

        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.max_url_correction_attempts < 0:
            raise ValueError("max_url_correction_attempts must be >= 0")
        if self.max_consecutive_zero_job_visits <= 0:
            raise ValueError("max_consecutive_zero_job_visits must be > 0")
        if self.pagination_max_pages < 0:
            raise ValueError("pagination_max_pages must be >= 0")
        if self.max_jobs_per_source <= 0:
            raise ValueError("max_jobs_per_source must be > 0")
        if self.max_steps_per_cycle <= 0:
            raise ValueError("max_steps_per_cycle must be > 0")
        if self.max_parallel_sources <= 0:
            raise ValueError("max_parallel_sources must be > 0")
        if self.cycles < 0:
            raise ValueError("cycles must be >= 0")
        if self.cycle_delay_seconds < 0:
            raise ValueError("cycle_delay_seconds must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")
        if self.rate_limit_seconds < 0:
            raise ValueError("rate_limit_seconds must be >= 0")
        if self.selenium_wait_seconds < 0:
            raise ValueError("selenium_wait_seconds must be >= 0")

        self.backend = _to_backend(self.backend)

    @property
    def enabled_sources(self) -> list[SourceConfig]:
        return [source for source in self.sources if source.enabled]

    def get_source(self, key: str) -> SourceConfig | None:
        """Find a source by id, slug, or case-insensitive name."""

        lowered = key.strip().lower()
        for source in self.sources:
            if key in {source.id, source.slug} or source.name.lower() == lowered:
                return source
        return None

    def state_limits(self) -> dict[str, int | bool]:
        """Counter limits forwarded to `create_crawl_state`."""

        return {
            "max_depth": self.max_depth,
            "max_retries": self.max_retries,
            "max_url_correction_attempts": self.max_url_correction_attempts,
            "max_consecutive_zero_job_visits": self.max_consecutive_zero_job_visits,
            "stop_on_exhaustion": self.stop_on_exhaustion,
        }

    def headers(self) -> dict[str, str]:
        merged: dict[str, str] = dict(self.default_headers)
        merged.setdefault("User-Agent", self.user_agent)
        return merged

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "sources": [source.to_json() for source in self.sources],
            "max_depth": self.max_depth,
            "max_retries": self.max_retries,
            "max_url_correction_attempts": self.max_url_correction_attempts,
            "max_consecutive_zero_job_visits": self.max_consecutive_zero_job_visits,
            "stop_on_exhaustion": self.stop_on_exhaustion,
            "pagination_max_pages": self.pagination_max_pages,
            "max_jobs_per_source": self.max_jobs_per_source,
            "max_steps_per_cycle": self.max_steps_per_cycle,
            "max_parallel_sources": self.max_parallel_sources,
            "cycles": self.cycles,
            "cycle_delay_seconds": self.cycle_delay_seconds,
            "timeout_seconds": self.timeout_seconds,
            "retries": self.retries,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "rate_limit_seconds": self.rate_limit_seconds,
            "user_agent": self.user_agent,
            "default_headers": self.default_headers,
            "backend": self.backend.value,
            "selenium_wait_seconds": self.selenium_wait_seconds,
            "human_handoff": self.human_handoff,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary."""

        if "sources" not in payload:
            raise ValueError("Config missing required key: 'sources'")

        def get_int(key: str, default: int) -> int:
            value = _as_int(payload.get(key, default), key)
            return default if value is None else value

        def get_float(key: str, default: float) -> float:
            value = _as_float(payload.get(key, default), key)
            return default if value is None else value

        return cls(
            sources=_coerce_source_list(list(payload.get("sources") or [])),
            max_depth=get_int("max_depth", DEFAULT_MAX_DEPTH),
            max_retries=get_int("max_retries", DEFAULT_MAX_RETRIES),
            max_url_correction_attempts=get_int(
                "max_url_correction_attempts",
                DEFAULT_MAX_URL_CORRECTION_ATTEMPTS,
            ),
            max_consecutive_zero_job_visits=get_int(
                "max_consecutive_zero_job_visits",
                DEFAULT_MAX_CONSECUTIVE_ZERO_JOB_VISITS,
            ),
            stop_on_exhaustion=_as_bool(
                payload.get("stop_on_exhaustion", DEFAULT_STOP_ON_EXHAUSTION),
                "stop_on_exhaustion",
            ),
            pagination_max_pages=get_int("pagination_max_pages", DEFAULT_PAGINATION_MAX_PAGES),
            max_jobs_per_source=get_int("max_jobs_per_source", DEFAULT_MAX_JOBS_PER_SOURCE),
            max_steps_per_cycle=get_int("max_steps_per_cycle", DEFAULT_MAX_STEPS_PER_CYCLE),
            max_parallel_sources=get_int("max_parallel_sources", DEFAULT_MAX_PARALLEL_SOURCES),
            cycles=get_int("cycles", DEFAULT_CYCLES),
            cycle_delay_seconds=get_float("cycle_delay_seconds", DEFAULT_CYCLE_DELAY_SECONDS),
            timeout_seconds=get_float("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            retries=get_int("retries", DEFAULT_RETRIES),
            retry_backoff_seconds=get_float("retry_backoff_seconds", DEFAULT_RETRY_BACKOFF_SECONDS),
            rate_limit_seconds=get_float("rate_limit_seconds", DEFAULT_RATE_LIMIT_SECONDS),
            user_agent=str(payload.get("user_agent", DEFAULT_USER_AGENT)),
            default_headers={
                str(k): str(v)
                for k, v in dict(payload.get("default_headers", DEFAULT_HTTP_HEADERS)).items()
            },
            backend=_to_backend(payload.get("backend", DEFAULT_FETCH_BACKEND)),
            selenium_wait_seconds=get_float("selenium_wait_seconds", DEFAULT_SELENIUM_WAIT_SECONDS),
            human_handoff=_as_bool(
                payload.get("human_handoff", DEFAULT_HUMAN_HANDOFF),
                "human_handoff",
            ),
            metadata=dict(payload.get("metadata", {})),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "load_config",
    "save_config",
]
