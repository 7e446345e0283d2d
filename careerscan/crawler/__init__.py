"""Crawl orchestration engine: planner, crawl state, handoff gate and driver."""

from .advisor import PassiveAdvisor, decision_from_payload
from .classifier import HeuristicPageClassifier
from .config import CrawlConfig, load_config, save_config
from .control import ActivityEvent, ActivityLog, RunContext, ScrapeController
from .driver import Collaborators, ScrapeLoop, SourceCrawler, SourceOutcome
from .errors import (
    CrawlerError,
    HandoffBusyError,
    HandoffCancelledError,
    HandoffError,
    HandoffNotPendingError,
    StopRequested,
)
from .extractor import JsonLdJobExtractor
from .fetcher import Fetcher, SeleniumHumanBrowser
from .frontier import Frontier, estimate_priority
from .handoff import HandoffPurpose, HumanHandoffGate
from .link_filter import filter_links
from .pagination import generate_pagination_seeds
from .planner import plan_next_action
from .resolver import ProbingUrlResolver
from .state import CrawlState, create_crawl_state
from .stats import StatsCollector
from .storage import SourceStore, Storage
from .types import (
    Action,
    ActionType,
    AdaptationTag,
    AdvisorDecision,
    ApplyUrlCorrection,
    CaptureRecord,
    CycleDone,
    ErrorRecord,
    FetchBackend,
    FetchResult,
    FilteredLink,
    FrontierItem,
    LastResult,
    PageType,
    RetryWait,
    SourceConfig,
    SourceStatus,
    TriggerCaptcha,
    TriggerLoginWall,
    UrlCorrection,
    VisitContext,
    VisitUrl,
    coerce_adaptation,
    coerce_page_type,
    utc_now_iso,
)
from .url import extract_links_from_html, normalize_url, resolve_url

__all__ = [
    "Action",
    "ActionType",
    "ActivityEvent",
    "ActivityLog",
    "AdaptationTag",
    "AdvisorDecision",
    "ApplyUrlCorrection",
    "CaptureRecord",
    "Collaborators",
    "CrawlConfig",
    "CrawlState",
    "CrawlerError",
    "CycleDone",
    "ErrorRecord",
    "FetchBackend",
    "FetchResult",
    "Fetcher",
    "FilteredLink",
    "Frontier",
    "FrontierItem",
    "HandoffBusyError",
    "HandoffCancelledError",
    "HandoffError",
    "HandoffNotPendingError",
    "HandoffPurpose",
    "HeuristicPageClassifier",
    "HumanHandoffGate",
    "JsonLdJobExtractor",
    "LastResult",
    "PageType",
    "PassiveAdvisor",
    "ProbingUrlResolver",
    "RetryWait",
    "RunContext",
    "ScrapeController",
    "ScrapeLoop",
    "SeleniumHumanBrowser",
    "SourceConfig",
    "SourceCrawler",
    "SourceOutcome",
    "SourceStatus",
    "SourceStore",
    "StatsCollector",
    "StopRequested",
    "Storage",
    "TriggerCaptcha",
    "TriggerLoginWall",
    "UrlCorrection",
    "VisitContext",
    "VisitUrl",
    "coerce_adaptation",
    "coerce_page_type",
    "create_crawl_state",
    "decision_from_payload",
    "estimate_priority",
    "extract_links_from_html",
    "filter_links",
    "generate_pagination_seeds",
    "load_config",
    "normalize_url",
    "plan_next_action",
    "resolve_url",
    "save_config",
    "utc_now_iso",
]
