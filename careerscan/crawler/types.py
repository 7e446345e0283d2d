"""Core type definitions for the crawl orchestration engine.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union


class PageType(str, Enum):
    """Page-type tags produced by a page classifier."""

    LISTING = "listing"
    COMPANY_CAREERS = "company_careers"
    CATEGORY_LISTING = "category_listing"
    DETAIL = "detail"
    LOGIN_WALL = "login_wall"
    CAPTCHA_CHALLENGE = "captcha_challenge"
    ERROR = "error"
    EXPIRED = "expired"
    OTHER = "other"


LISTING_PAGE_TYPES = frozenset({PageType.LISTING, PageType.CATEGORY_LISTING})
PRIOR_SEED_PAGE_TYPES = frozenset(
    {PageType.LISTING, PageType.COMPANY_CAREERS, PageType.CATEGORY_LISTING}
)


class AdaptationTag(str, Enum):
    """Closed set of next-step hints an advisor may attach to a visit."""

    RETRY_EXTRACTION = "RETRY_EXTRACTION"
    TRY_NEW_URL = "TRY_NEW_URL"
    CAPTCHA_HUMAN_SOLVE = "CAPTCHA_HUMAN_SOLVE"
    LOGIN_WALL_HUMAN = "LOGIN_WALL_HUMAN"
    RETRY_CYCLE_SOON = "RETRY_CYCLE_SOON"


class ActionType(str, Enum):
    """Kinds of action the planner can emit."""

    VISIT_URL = "VISIT_URL"
    TRIGGER_LOGIN_WALL = "TRIGGER_LOGIN_WALL"
    TRIGGER_CAPTCHA = "TRIGGER_CAPTCHA"
    APPLY_URL_CORRECTION = "APPLY_URL_CORRECTION"
    RETRY_WAIT = "RETRY_WAIT"
    CYCLE_DONE = "CYCLE_DONE"


class FetchBackend(str, Enum):
    """Backend used to fetch page content."""

    REQUESTS = "requests"
    SELENIUM = "selenium"


class SourceStatus(str, Enum):
    """Outcome recorded for one source after a cycle."""

    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for manifests/JSONL."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def coerce_page_type(value: Any) -> PageType | None:
    """Map a classifier label onto `PageType`.

    `None` and empty labels stay `None`; labels outside the known set become
    `PageType.OTHER`.
    """

    if value is None:
        return None
    if isinstance(value, PageType):
        return value
    label = str(value).strip().lower()
    if not label:
        return None
    try:
        return PageType(label)
    except ValueError:
        return PageType.OTHER


def coerce_adaptation(value: Any) -> AdaptationTag | None:
    """Map a loosely-typed adaptation hint onto `AdaptationTag`.

    Anything unrecognized (including "CONTINUE") is treated as no adaptation.
    """

    if value is None:
        return None
    if isinstance(value, AdaptationTag):
        return value
    label = str(value).strip().upper()
    try:
        return AdaptationTag(label)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class SourceConfig:
    """One crawlable job source."""

    id: str
    name: str
    url: str
    slug: str | None = None
    type: str = "COMPANY"
    enabled: bool = True
    seed_urls: list[str] = field(default_factory=list)
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    @property
    def storage_key(self) -> str:
        raw = self.slug or self.name
        cleaned = "".join(char if char.isalnum() else "_" for char in raw.lower())
        return cleaned.strip("_") or self.id

    def to_json(self) -> JSONDict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "slug": self.slug,
            "type": self.type,
            "enabled": self.enabled,
            "seed_urls": list(self.seed_urls),
            "metadata": self.metadata,
        }


@dataclass(frozen=True, slots=True)
class FrontierItem:
    """A pending visit tracked by the frontier."""

    url: str
    depth: int
    priority: int


@dataclass(frozen=True, slots=True)
class FilteredLink:
    """A discovered link accepted by the link filter."""

    url: str
    depth: int


@dataclass(slots=True)
class LastResult:
    """Outcome of the most recently executed action.

    Produced once by the driver and consumed by exactly one planner call, which
    may clear `adaptation` and `page_type` in place.
    """

    capture_id: str = ""
    page_type: PageType | None = None
    jobs_count: int = 0
    error: str | None = None
    adaptation: AdaptationTag | None = None
    suggested_url: str | None = None
    wait_ms: int | None = None
    visited_url: str | None = None
    visited_depth: int | None = None

    def to_json(self) -> JSONDict:
        return {
            "capture_id": self.capture_id,
            "page_type": None if self.page_type is None else self.page_type.value,
            "jobs_count": self.jobs_count,
            "error": self.error,
            "adaptation": None if self.adaptation is None else self.adaptation.value,
            "suggested_url": self.suggested_url,
            "wait_ms": self.wait_ms,
            "visited_url": self.visited_url,
            "visited_depth": self.visited_depth,
        }


@dataclass(frozen=True, slots=True)
class VisitUrl:
    type: ClassVar[ActionType] = ActionType.VISIT_URL

    url: str
    depth: int


@dataclass(frozen=True, slots=True)
class TriggerLoginWall:
    type: ClassVar[ActionType] = ActionType.TRIGGER_LOGIN_WALL

    url: str


@dataclass(frozen=True, slots=True)
class TriggerCaptcha:
    type: ClassVar[ActionType] = ActionType.TRIGGER_CAPTCHA

    url: str


@dataclass(frozen=True, slots=True)
class ApplyUrlCorrection:
    type: ClassVar[ActionType] = ActionType.APPLY_URL_CORRECTION

    url: str
    source_name: str


@dataclass(frozen=True, slots=True)
class RetryWait:
    type: ClassVar[ActionType] = ActionType.RETRY_WAIT

    wait_ms: int
    reason: str
    retry_url: str
    retry_depth: int


@dataclass(frozen=True, slots=True)
class CycleDone:
    type: ClassVar[ActionType] = ActionType.CYCLE_DONE

    reason: str


Action = Union[VisitUrl, TriggerLoginWall, TriggerCaptcha, ApplyUrlCorrection, RetryWait, CycleDone]


@dataclass(slots=True)
class FetchResult:
    """Result of rendering one URL."""

    requested_url: str
    final_url: str | None = None
    html: str | None = None
    status_code: int | None = None
    backend: FetchBackend = FetchBackend.REQUESTS
    fetched_at: str = field(default_factory=utc_now_iso)
    elapsed_ms: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.html is not None


@dataclass(frozen=True, slots=True)
class VisitContext:
    """Everything an advisor gets to see about one visit."""

    source_name: str
    url: str
    depth: int
    page_type: PageType | None
    jobs_count: int
    html_chars: int
    attempt_number: int
    frontier_size: int
    url_correction_attempts: int
    error: str | None = None
    recent_activity: str = ""


@dataclass(frozen=True, slots=True)
class AdvisorDecision:
    """Normalized advisor output; `adaptation=None` means keep going."""

    adaptation: AdaptationTag | None = None
    suggested_url: str | None = None
    wait_ms: int | None = None
    cycle_delay_seconds: float | None = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class UrlCorrection:
    """Result of one URL correction attempt."""

    corrected_url: str | None
    attempts_made: int = 1
    method: str = "none"
    tried_urls: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CaptureRecord:
    """One captured page row written to captures/index.jsonl."""

    capture_id: str
    url: str
    depth: int
    page_type: PageType | None
    jobs_count: int
    strategy: str = "visit"
    captured_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "capture_id": self.capture_id,
            "url": self.url,
            "depth": self.depth,
            "page_type": None if self.page_type is None else self.page_type.value,
            "jobs_count": self.jobs_count,
            "strategy": self.strategy,
            "captured_at": self.captured_at,
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> "CaptureRecord":
        return cls(
            capture_id=str(payload.get("capture_id", "")),
            url=str(payload.get("url", "")),
            depth=int(payload.get("depth", 0)),
            page_type=coerce_page_type(payload.get("page_type")),
            jobs_count=int(payload.get("jobs_count", 0)),
            strategy=str(payload.get("strategy", "visit")),
            captured_at=str(payload.get("captured_at", "")),
        )


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """One error row written to errors.jsonl."""

    stage: str
    url: str
    message: str
    error_type: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, *, stage: str, url: str, exc: BaseException, **kwargs: Any) -> "ErrorRecord":
        return cls(
            stage=stage,
            url=url,
            message=str(exc),
            error_type=exc.__class__.__name__,
            **kwargs,
        )

    def to_json(self) -> JSONDict:
        return {
            "stage": self.stage,
            "url": self.url,
            "message": self.message,
            "error_type": self.error_type,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }


__all__ = [
    "Action",
    "ActionType",
    "AdaptationTag",
    "AdvisorDecision",
    "ApplyUrlCorrection",
    "CaptureRecord",
    "CycleDone",
    "ErrorRecord",
    "FetchBackend",
    "FetchResult",
    "FilteredLink",
    "FrontierItem",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "LISTING_PAGE_TYPES",
    "LastResult",
    "PRIOR_SEED_PAGE_TYPES",
    "PageType",
    "RetryWait",
    "SourceConfig",
    "SourceStatus",
    "TriggerCaptcha",
    "TriggerLoginWall",
    "UrlCorrection",
    "VisitContext",
    "VisitUrl",
    "coerce_adaptation",
    "coerce_page_type",
    "utc_now_iso",
]
